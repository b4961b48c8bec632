"""Counselboard - counseling-session lifecycle engine and dashboard analytics"""
