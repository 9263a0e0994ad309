from typing import Optional

from package_resolver.core.cache import ConcurrentInMemoryCache
from package_resolver.data.settings import load_provider_config
from package_resolver.domain.models import ProviderConfig
from package_resolver.repository.factory import PackageRepositoryFactory
from package_resolver.resources.factory import ResourceCollectionFactory
from package_resolver.services.discovery import PackageDiscoveryService

_provider_config: Optional[ProviderConfig] = None
_repository_factory: Optional[PackageRepositoryFactory] = None
_discovery_service: Optional[PackageDiscoveryService] = None


def get_provider_config() -> ProviderConfig:
    global _provider_config
    if _provider_config is None:
        _provider_config = load_provider_config()
    return _provider_config


def get_repository_factory() -> PackageRepositoryFactory:
    global _repository_factory
    if _repository_factory is None:
        _repository_factory = PackageRepositoryFactory.default()
    return _repository_factory


def get_discovery_service() -> PackageDiscoveryService:
    global _discovery_service
    if _discovery_service is None:
        config = get_provider_config()
        _discovery_service = PackageDiscoveryService(
            get_repository_factory(), max_workers=config.max_discovery_workers
        )
    return _discovery_service


def reset_dependencies() -> None:
    """Drop every singleton and process-wide cache."""
    global _provider_config, _repository_factory, _discovery_service
    _provider_config = None
    _repository_factory = None
    _discovery_service = None
    ConcurrentInMemoryCache.instance().clear()
    ResourceCollectionFactory.clear_cache()
