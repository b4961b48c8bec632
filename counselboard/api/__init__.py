"""HTTP API for the counseling-session engine"""
