"""Registry of the custom resource kinds the operator reads and writes."""

import logging
from typing import NamedTuple

logger = logging.getLogger(__name__)


class CRDInfo(NamedTuple):
    group: str
    version: str
    kind: str
    plural: str

    @property
    def api_version(self):
        return f"{self.group}/{self.version}"


class CRDRegistry:
    """Maps spec models and kinds to their API coordinates."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._by_kind = {}
        return cls._instance

    @classmethod
    def register(cls, group, version, kind, plural=None):
        """Decorator recording the API coordinates of a spec model.

        Args:
            group: API group (e.g., 'dataplane.openstack.org')
            version: API version (e.g., 'v1beta1')
            kind: Kind name (e.g., 'OpenStackDataPlaneNodeSet')
            plural: Plural name (defaults to kind.lower() + 's')
        """

        def decorator(model_class):
            info = CRDInfo(group, version, kind, plural or f"{kind.lower()}s")
            model_class._crd_info = info
            cls()._by_kind[kind] = info
            logger.debug(f"Registered CRD: {info.api_version}/{kind}")
            return model_class

        return decorator

    def get(self, kind):
        return self._by_kind.get(kind)

    def kinds(self):
        return sorted(self._by_kind)


def crd_info(model_class) -> CRDInfo:
    info = getattr(model_class, "_crd_info", None)
    if info is None:
        raise ValueError(
            f"Model {model_class.__name__} not decorated with @CRDRegistry.register"
        )
    return info


def api_coordinates(model_class):
    """Return the (group, version, plural) triple of a registered model."""
    info = crd_info(model_class)
    return info.group, info.version, info.plural
