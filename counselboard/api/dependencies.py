"""
Service wiring for the API

Services are constructed once at startup and stored on ``app.state``;
route handlers receive them through FastAPI dependencies.
"""
from fastapi import FastAPI, Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from counselboard.repository.follow_up_store import FollowUpStore
from counselboard.repository.session_store import SessionStore
from counselboard.services.analytics import AnalyticsAggregator
from counselboard.services.auto_complete import AutoCompleteSweeper
from counselboard.services.follow_ups import FollowUpTracker
from counselboard.services.lifecycle import LifecycleController
from counselboard.services.session_query import FilteredQueryEngine


def install_services(app: FastAPI, session_factory: async_sessionmaker) -> None:
    """Build every service against one session factory and attach them to the app."""
    store = SessionStore(session_factory)

    app.state.session_store = store
    app.state.lifecycle = LifecycleController(store)
    app.state.sweeper = AutoCompleteSweeper(store)
    app.state.analytics = AnalyticsAggregator(session_factory)
    app.state.query_engine = FilteredQueryEngine(session_factory)
    app.state.follow_ups = FollowUpTracker(FollowUpStore(session_factory), store)


def get_lifecycle(request: Request) -> LifecycleController:
    return request.app.state.lifecycle


def get_sweeper(request: Request) -> AutoCompleteSweeper:
    return request.app.state.sweeper


def get_analytics(request: Request) -> AnalyticsAggregator:
    return request.app.state.analytics


def get_query_engine(request: Request) -> FilteredQueryEngine:
    return request.app.state.query_engine


def get_follow_ups(request: Request) -> FollowUpTracker:
    return request.app.state.follow_ups
