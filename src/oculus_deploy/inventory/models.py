"""Inventory data models: per-kind resource records and the snapshot."""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ResourceKind(str, Enum):
    """Resource kinds the collector knows about, in reporting order."""
    NETWORK = "network"
    SUBNET = "subnet"
    ROUTE_TABLE = "route-table"
    NETWORK_ACL = "network-acl"
    NAT_GATEWAY = "nat-gateway"
    COMPUTE_INSTANCE = "compute-instance"
    DATABASE_INSTANCE = "database-instance"
    DATABASE_PROXY = "database-proxy"
    COMPUTE_FUNCTION = "compute-function"
    API_ENDPOINT_GROUP = "api-endpoint-group"
    MANAGED_SECRET = "managed-secret"
    OBJECT_STORE_BUCKET = "object-store-bucket"
    CONTENT_DELIVERY_DISTRIBUTION = "content-delivery-distribution"

    @property
    def position(self) -> int:
        return list(ResourceKind).index(self)


class SubnetRole(str, Enum):
    """Routing role of a subnet."""
    PUBLIC = "public"
    PRIVATE = "private"
    ISOLATED = "isolated"


class BaseRecord(BaseModel):
    """Fields shared by every resource record."""

    id: str = Field(..., min_length=1, description="Provider-assigned identifier")
    name: Optional[str] = Field(None, description="Human-readable name, when the resource has one")
    tags: Dict[str, str] = Field(default_factory=dict, description="Resource tags")

    @property
    def label(self) -> str:
        return self.name or self.id


class NetworkRecord(BaseRecord):
    kind: Literal["network"] = "network"
    state: Optional[str] = None
    cidr_block: Optional[str] = None
    is_default: bool = False


class SubnetRecord(BaseRecord):
    kind: Literal["subnet"] = "subnet"
    vpc_id: Optional[str] = None
    availability_zone: Optional[str] = None
    cidr_block: Optional[str] = None
    role: SubnetRole = SubnetRole.PRIVATE


class RouteTableRecord(BaseRecord):
    kind: Literal["route-table"] = "route-table"
    vpc_id: Optional[str] = None
    main: bool = False


class NetworkAclRecord(BaseRecord):
    kind: Literal["network-acl"] = "network-acl"
    vpc_id: Optional[str] = None
    is_default: bool = False


class NatGatewayRecord(BaseRecord):
    kind: Literal["nat-gateway"] = "nat-gateway"
    vpc_id: Optional[str] = None
    subnet_id: Optional[str] = None
    state: Optional[str] = None


class ComputeInstanceRecord(BaseRecord):
    kind: Literal["compute-instance"] = "compute-instance"
    vpc_id: Optional[str] = None
    subnet_id: Optional[str] = None
    state: Optional[str] = None
    instance_type: Optional[str] = None


class DatabaseInstanceRecord(BaseRecord):
    kind: Literal["database-instance"] = "database-instance"
    engine: Optional[str] = None
    status: Optional[str] = None
    endpoint_address: Optional[str] = None
    endpoint_port: Optional[int] = None
    vpc_id: Optional[str] = None


class DatabaseProxyRecord(BaseRecord):
    kind: Literal["database-proxy"] = "database-proxy"
    status: Optional[str] = None
    endpoint: Optional[str] = None
    arn: Optional[str] = None
    engine_family: Optional[str] = None
    vpc_id: Optional[str] = None


class ComputeFunctionRecord(BaseRecord):
    kind: Literal["compute-function"] = "compute-function"
    runtime: Optional[str] = None
    arn: Optional[str] = None
    environment: Dict[str, str] = Field(default_factory=dict)
    last_modified: Optional[str] = None


class ApiEndpointGroupRecord(BaseRecord):
    kind: Literal["api-endpoint-group"] = "api-endpoint-group"
    stage_name: Optional[str] = Field(None, description="Stage the generated URLs point at")
    has_prod_deployment: bool = False
    created_at: Optional[datetime] = None


class ManagedSecretRecord(BaseRecord):
    kind: Literal["managed-secret"] = "managed-secret"
    arn: Optional[str] = None


class ObjectStoreBucketRecord(BaseRecord):
    kind: Literal["object-store-bucket"] = "object-store-bucket"
    created_at: Optional[datetime] = None


class DistributionRecord(BaseRecord):
    kind: Literal["content-delivery-distribution"] = "content-delivery-distribution"
    domain_name: Optional[str] = None
    status: Optional[str] = None
    arn: Optional[str] = None
    origins: List[str] = Field(default_factory=list)


ResourceRecord = Annotated[
    Union[
        NetworkRecord,
        SubnetRecord,
        RouteTableRecord,
        NetworkAclRecord,
        NatGatewayRecord,
        ComputeInstanceRecord,
        DatabaseInstanceRecord,
        DatabaseProxyRecord,
        ComputeFunctionRecord,
        ApiEndpointGroupRecord,
        ManagedSecretRecord,
        ObjectStoreBucketRecord,
        DistributionRecord,
    ],
    Field(discriminator="kind"),
]


class InventorySnapshot(BaseModel):
    """Marker-matched resources of one account/region at one point in time.

    ``resources`` always holds every kind, in enumeration order, even when a
    kind's list is empty. Record identifiers are unique within a kind.
    """

    model_config = ConfigDict(populate_by_name=True)

    region: str = Field(..., description="Region the snapshot was collected from")
    marker: str = Field("oculus", description="Marker used to match resources")
    captured_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="timestamp")
    resources: Dict[ResourceKind, List[ResourceRecord]] = Field(default_factory=dict)
    observed_public_ip: Optional[str] = Field(None, alias="developerPublicIP")
    last_ip_update: Optional[datetime] = Field(None, alias="lastIPUpdate")

    @model_validator(mode="after")
    def normalize_resources(self):
        """Fill in absent kinds, order them and reject duplicate ids."""
        ordered: Dict[ResourceKind, List[Any]] = {}
        for kind in ResourceKind:
            records = list(self.resources.get(kind, []))
            seen = set()
            for record in records:
                if record.kind != kind.value:
                    raise ValueError(f"{record.kind} record listed under {kind.value}")
                if record.id in seen:
                    raise ValueError(f"Duplicate {kind.value} id: {record.id}")
                seen.add(record.id)
            ordered[kind] = records
        self.resources = ordered
        return self

    def of_kind(self, kind: ResourceKind) -> List[Any]:
        """Records of one kind, in collection order."""
        return self.resources.get(kind, [])

    def count(self, kind: ResourceKind) -> int:
        return len(self.of_kind(kind))

    def first(self, kind: ResourceKind) -> Optional[Any]:
        records = self.of_kind(kind)
        return records[0] if records else None

    def total(self) -> int:
        return sum(len(records) for records in self.resources.values())

    def counts(self) -> Dict[ResourceKind, int]:
        """Per-kind record counts in enumeration order."""
        return {kind: self.count(kind) for kind in ResourceKind}

    def with_public_ip(self, address: str, observed_at: Optional[datetime] = None) -> "InventorySnapshot":
        """Copy of this snapshot carrying the operator's public address."""
        return self.model_copy(update={
            "observed_public_ip": address,
            "last_ip_update": observed_at or datetime.now(timezone.utc),
        })

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready form used by the cache file."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InventorySnapshot":
        return cls.model_validate(data)
