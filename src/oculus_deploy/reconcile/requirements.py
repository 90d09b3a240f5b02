"""Required resource set and gap report models."""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from oculus_deploy.inventory.models import ResourceKind, SubnetRole


@dataclass(frozen=True)
class Requirement:
    """At least ``min_count`` resources of ``kind`` must exist.

    ``role`` narrows subnet requirements; a private requirement also counts
    isolated subnets. Requirements flagged ``new_network_only`` only block
    when the network is being created, not when an existing one is reused.
    """
    name: str
    kind: ResourceKind
    min_count: int = 1
    role: Optional[SubnetRole] = None
    new_network_only: bool = False

    def __post_init__(self):
        if self.min_count < 1:
            raise ValueError(f"min_count must be at least 1 for requirement '{self.name}'")
        if self.role is not None and self.kind != ResourceKind.SUBNET:
            raise ValueError(f"role is only valid for subnet requirements ('{self.name}')")

    def accepts(self, record) -> bool:
        """Whether a record of the right kind counts toward this requirement."""
        if self.role is None:
            return True
        role = getattr(record, 'role', None)
        if self.role == SubnetRole.PRIVATE:
            return role in (SubnetRole.PRIVATE, SubnetRole.ISOLATED)
        return role == self.role


class RequiredResourceSet:
    """Ordered, named requirements the environment must satisfy."""

    def __init__(self, requirements: Iterable[Requirement]):
        self.requirements: Tuple[Requirement, ...] = tuple(requirements)
        names = [requirement.name for requirement in self.requirements]
        if len(names) != len(set(names)):
            raise ValueError("Requirement names must be unique")

    def __iter__(self):
        return iter(self.requirements)

    def __len__(self) -> int:
        return len(self.requirements)

    @classmethod
    def default(cls, include_functions: bool = False) -> "RequiredResourceSet":
        """The topology the CDK stack declares: one VPC with a public
        subnet and two private/isolated subnets, a PostgreSQL instance
        behind a proxy, and the site bucket.
        """
        requirements = [
            Requirement('network', ResourceKind.NETWORK, 1),
            Requirement('public-subnets', ResourceKind.SUBNET, 1,
                        role=SubnetRole.PUBLIC, new_network_only=True),
            Requirement('private-subnets', ResourceKind.SUBNET, 2,
                        role=SubnetRole.PRIVATE, new_network_only=True),
            Requirement('route-tables', ResourceKind.ROUTE_TABLE, 1),
            Requirement('network-acls', ResourceKind.NETWORK_ACL, 1),
            Requirement('database-instance', ResourceKind.DATABASE_INSTANCE, 1),
            Requirement('database-proxy', ResourceKind.DATABASE_PROXY, 1),
            Requirement('object-store-bucket', ResourceKind.OBJECT_STORE_BUCKET, 1),
        ]
        if include_functions:
            requirements.append(Requirement('compute-functions', ResourceKind.COMPUTE_FUNCTION, 1))
        return cls(requirements)

    @classmethod
    def from_config(cls, deploy_config, requirement_configs=None) -> "RequiredResourceSet":
        """Build from configuration, falling back to the default topology."""
        if not requirement_configs:
            return cls.default(include_functions=deploy_config.include_functions)
        return cls(
            Requirement(
                name=item.name,
                kind=item.kind,
                min_count=item.min_count,
                role=item.role,
                new_network_only=item.new_network_only,
            )
            for item in requirement_configs
        )


@dataclass(frozen=True)
class RequirementStatus:
    """Outcome of one requirement check."""
    name: str
    kind: ResourceKind
    required: int
    observed: int
    present: bool
    blocking: bool


@dataclass(frozen=True)
class GapReport:
    """Presence of every requirement, plus what is missing.

    ``statuses`` follow the requirement set's declaration order; ``missing``
    and ``informational`` follow the resource kind enumeration order.
    """
    statuses: Tuple[RequirementStatus, ...]
    reuse_network: bool = False
    missing: Tuple[RequirementStatus, ...] = field(init=False)
    informational: Tuple[RequirementStatus, ...] = field(init=False)

    def __post_init__(self):
        absent = sorted(
            (status for status in self.statuses if not status.present),
            key=lambda status: status.kind.position
        )
        object.__setattr__(self, 'missing', tuple(s for s in absent if s.blocking))
        object.__setattr__(self, 'informational', tuple(s for s in absent if not s.blocking))

    @property
    def all_present(self) -> bool:
        """True when nothing blocking is missing."""
        return not self.missing

    @property
    def presence(self) -> Dict[str, bool]:
        return {status.name: status.present for status in self.statuses}

    @property
    def missing_names(self) -> List[str]:
        return [status.name for status in self.missing]

    @property
    def missing_kinds(self) -> List[ResourceKind]:
        """Distinct missing kinds in enumeration order."""
        kinds: List[ResourceKind] = []
        for status in self.missing:
            if status.kind not in kinds:
                kinds.append(status.kind)
        return kinds
