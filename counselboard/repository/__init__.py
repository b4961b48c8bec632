"""Persistence layer for counseling sessions"""
