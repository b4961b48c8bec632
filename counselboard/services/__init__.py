"""Lifecycle, auto-complete, analytics and query services"""
