"""FastAPI routers"""
