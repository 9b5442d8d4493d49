"""Service layer: trigger evaluation, watcher lifecycle, execution and notification."""
from kalshi_watch.services.actions import (AlertAction, StopLossAction,
                                           TriggerAction)
from kalshi_watch.services.notifier import (LogNotifier, Notifier,
                                            WebhookNotifier,
                                            render_notification)
from kalshi_watch.services.pipeline import ExecutionPipeline, PipelineState
from kalshi_watch.services.registry import WatcherRegistry
from kalshi_watch.services.watcher import Watcher

__all__ = [
    "AlertAction",
    "ExecutionPipeline",
    "LogNotifier",
    "Notifier",
    "PipelineState",
    "StopLossAction",
    "TriggerAction",
    "Watcher",
    "WatcherRegistry",
    "WebhookNotifier",
    "render_notification",
]
