import pytest
from unittest.mock import MagicMock
from src.core.base_system import BaseSystem

class ContextService(BaseSystem):
    def __init__(self, config):
        super().__init__(config)
        self.initialized = 0

    async def initialize(self):
        self.initialized += 1
        await super().initialize()

    async def shutdown(self):
        await super().shutdown()

@pytest.mark.asyncio
async def test_async_context_manager():
    config = MagicMock()
    service = ContextService(config)

    # Verify not ready initially
    assert not service.is_ready
    assert service.config is config

    # Test Context Entry
    async with service as s:
        assert s is service
        assert service.is_ready

    # Test Context Exit
    assert not service.is_ready

@pytest.mark.asyncio
async def test_ready_service_is_not_reinitialized():
    service = ContextService(MagicMock())
    await service.initialize()

    async with service:
        pass

    assert service.initialized == 1
    assert not service.is_ready

def test_ensure_ready():
    service = ContextService(MagicMock())

    with pytest.raises(RuntimeError, match="ContextService is not initialized"):
        service.ensure_ready()
