"""
Domain events system

Tenant store changes are published as domain events so that dependents
(theme resolver, audit logging) stay in sync without holding their own copies.
"""

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional
import uuid
import structlog

logger = structlog.get_logger(__name__)


class DomainEvent:
    """Base class for domain events"""

    def __init__(self, event_id: uuid.UUID = None):
        self.event_id = event_id or uuid.uuid4()
        self.occurred_at = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary"""
        return {
            "event_id": str(self.event_id),
            "occurred_at": self.occurred_at.isoformat(),
            "event_type": self.__class__.__name__
        }


class TenantChanged(DomainEvent):
    """Event fired whenever the store installs a new tenant snapshot"""

    def __init__(
        self,
        tenant,
        previous_tenant_id: Optional[uuid.UUID] = None,
        event_id: uuid.UUID = None
    ):
        super().__init__(event_id)
        self.tenant = tenant
        self.previous_tenant_id = previous_tenant_id

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "tenant_id": str(self.tenant.id) if self.tenant else None,
            "previous_tenant_id": str(self.previous_tenant_id) if self.previous_tenant_id else None
        })
        return data


class FeatureToggled(DomainEvent):
    """Event fired when a feature flag is switched"""

    def __init__(
        self,
        tenant_id: uuid.UUID,
        feature_key: str,
        is_enabled: bool,
        provisioned: bool = False,
        event_id: uuid.UUID = None
    ):
        super().__init__(event_id)
        self.tenant_id = tenant_id
        self.feature_key = feature_key
        self.is_enabled = is_enabled
        self.provisioned = provisioned

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "tenant_id": str(self.tenant_id),
            "feature_key": self.feature_key,
            "is_enabled": self.is_enabled,
            "provisioned": self.provisioned
        })
        return data


class TenantOnboarded(DomainEvent):
    """Event fired when the onboarding wizard created a tenant"""

    def __init__(
        self,
        tenant_id: uuid.UUID,
        slug: str,
        user_id: uuid.UUID,
        enabled_features: List[str],
        event_id: uuid.UUID = None
    ):
        super().__init__(event_id)
        self.tenant_id = tenant_id
        self.slug = slug
        self.user_id = user_id
        self.enabled_features = enabled_features

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "tenant_id": str(self.tenant_id),
            "slug": self.slug,
            "user_id": str(self.user_id),
            "enabled_features": self.enabled_features
        })
        return data


EventHandler = Callable[[DomainEvent], Awaitable[None]]


class EventBus:
    """Simple in-memory event bus for publishing domain events"""

    def __init__(self):
        self._subscribers: Dict[str, List[EventHandler]] = {}

    def subscribe(self, event_type: str, handler: EventHandler):
        """Subscribe to a specific event type"""
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []
        self._subscribers[event_type].append(handler)
        logger.debug("event_handler_subscribed", event_type=event_type)

    def unsubscribe(self, event_type: str, handler: EventHandler):
        """Unsubscribe from an event type"""
        if event_type in self._subscribers and handler in self._subscribers[event_type]:
            self._subscribers[event_type].remove(handler)
            logger.debug("event_handler_unsubscribed", event_type=event_type)

    async def publish(self, event: DomainEvent):
        """Publish an event to all subscribers"""
        event_type = event.__class__.__name__
        handlers = list(self._subscribers.get(event_type, []))

        if not handlers:
            logger.debug("event_without_subscribers", event_type=event_type)
            return

        logger.info("event_published", event_type=event_type, event_id=str(event.event_id))

        for handler in handlers:
            try:
                await handler(event)
            except Exception:
                logger.error("event_handler_failed", event_type=event_type, exc_info=True)

    def clear_subscribers(self):
        """Clear all subscribers (useful for testing)"""
        self._subscribers.clear()
        logger.debug("event_subscribers_cleared")


class AuditLog:
    """Writes every tenant event a store publishes to the structured log"""

    EVENT_TYPES = (TenantChanged.__name__, FeatureToggled.__name__, TenantOnboarded.__name__)

    def __init__(self, log=None):
        self._log = log or structlog.get_logger("schoolhub.audit")

    async def record(self, event: DomainEvent):
        self._log.info("tenant_audit", **event.to_dict())

    def attach(self, bus: EventBus):
        for event_type in self.EVENT_TYPES:
            bus.subscribe(event_type, self.record)
