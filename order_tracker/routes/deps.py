import redis.asyncio as redis
from fastapi import Request

from order_tracker.config import Settings
from order_tracker.dispatcher import EventDispatcher
from order_tracker.service import OrderService


def get_settings(request: Request) -> Settings:
    return request.app.state.config


def get_service(request: Request) -> OrderService:
    return request.app.state.order_service


def get_dispatcher(request: Request) -> EventDispatcher:
    return request.app.state.dispatcher


def get_redis_client(request: Request) -> redis.Redis | None:
    return request.app.state.redis
