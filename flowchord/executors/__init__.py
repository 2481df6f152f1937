"""Node executors."""

from flowchord.executors.base import BaseNodeExecutor, CategoryExecutor, ExecutorServices
from flowchord.executors.client import ClientSideNodeExecutor
from flowchord.executors.registry import CLIENT, SERVER, ExecutorRegistry
from flowchord.executors.server import ServerNodeExecutor

__all__ = [
    "BaseNodeExecutor",
    "CategoryExecutor",
    "ExecutorServices",
    "ClientSideNodeExecutor",
    "ServerNodeExecutor",
    "ExecutorRegistry",
    "CLIENT",
    "SERVER",
]
