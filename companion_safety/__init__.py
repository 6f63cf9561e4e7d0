"""Companion safety monitoring.

Real-time crisis classification for AI companion conversations plus
session tracking that decides when to surface crisis resources or
suggest a break.
"""
