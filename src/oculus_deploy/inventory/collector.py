"""AWS resource inventory collector."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from oculus_deploy.inventory import normalize
from oculus_deploy.inventory.matcher import MarkerMatcher
from oculus_deploy.inventory.models import InventorySnapshot, ResourceKind
from oculus_deploy.utils.logging import get_logger

logger = get_logger(__name__)

# Errors raised by a per-resource secondary lookup that mean "no match"
SOFT_LOOKUP_ERRORS = (ClientError, BotoCoreError)


class InventoryCollector:
    """Lists project resources across EC2, RDS, Lambda, API Gateway,
    Secrets Manager, S3 and CloudFront.

    A resource belongs to the project when its name or tags contain the
    marker. Network children (subnets, route tables, ACLs, NAT gateways,
    instances) also belong to it when their owning VPC does.

    Each kind is listed independently on a thread pool. A kind whose listing
    fails is logged and comes back empty; the other kinds are unaffected.
    """

    def __init__(
        self,
        client_manager,
        region: str,
        marker: str = 'oculus',
        max_workers: int = 8
    ):
        """Initialize the collector.

        Args:
            client_manager: Object exposing ``get_client(service_name)``
            region: Region recorded in the snapshot
            marker: Project marker matched against names and tags
            max_workers: Maximum concurrent listing calls
        """
        self.clients = client_manager
        self.region = region
        self.matcher = MarkerMatcher(marker)
        self.max_workers = max_workers
        self._network_matches: Dict[str, bool] = {}
        self._subnet_vpcs: Dict[str, Optional[str]] = {}
        self._lock = threading.Lock()

        self.listers: Dict[ResourceKind, Callable[[], List[Any]]] = {
            ResourceKind.NETWORK: self.list_networks,
            ResourceKind.SUBNET: self.list_subnets,
            ResourceKind.ROUTE_TABLE: self.list_route_tables,
            ResourceKind.NETWORK_ACL: self.list_network_acls,
            ResourceKind.NAT_GATEWAY: self.list_nat_gateways,
            ResourceKind.COMPUTE_INSTANCE: self.list_compute_instances,
            ResourceKind.DATABASE_INSTANCE: self.list_database_instances,
            ResourceKind.DATABASE_PROXY: self.list_database_proxies,
            ResourceKind.COMPUTE_FUNCTION: self.list_compute_functions,
            ResourceKind.API_ENDPOINT_GROUP: self.list_api_endpoint_groups,
            ResourceKind.MANAGED_SECRET: self.list_managed_secrets,
            ResourceKind.OBJECT_STORE_BUCKET: self.list_object_store_buckets,
            ResourceKind.CONTENT_DELIVERY_DISTRIBUTION: self.list_distributions,
        }

    def collect(self) -> InventorySnapshot:
        """Collect a fresh snapshot of every resource kind.

        Returns:
            InventorySnapshot with every kind present, possibly empty
        """
        started = time.monotonic()
        logger.info(f"Collecting resources matching '{self.matcher.marker}' in {self.region}")

        self._index_networks()

        results: Dict[ResourceKind, List[Any]] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {
                pool.submit(self._collect_kind, kind, lister): kind
                for kind, lister in self.listers.items()
            }
            for future in as_completed(futures):
                results[futures[future]] = future.result()

        snapshot = InventorySnapshot(
            region=self.region,
            marker=self.matcher.marker,
            captured_at=datetime.now(timezone.utc),
            resources={kind: results.get(kind, []) for kind in ResourceKind},
        )
        logger.info(
            f"Collected {snapshot.total()} resources",
            extra={'operation': 'collect', 'duration': round(time.monotonic() - started, 3)}
        )
        return snapshot

    def _collect_kind(self, kind: ResourceKind, lister: Callable[[], List[Any]]) -> List[Any]:
        """Run one lister, turning any failure into an empty result."""
        try:
            records = lister()
        except Exception as e:
            logger.error(f"✗ Error retrieving {kind.value} resources: {e}",
                         extra={'resource_kind': kind.value})
            return []

        unique: Dict[str, Any] = {}
        for record in records:
            unique.setdefault(record.id, record)
        logger.info(f"✓ Retrieved {len(unique)} {kind.value} resources",
                    extra={'resource_kind': kind.value})
        return list(unique.values())

    # ------------------------------------------------------------------
    # Network ownership
    # ------------------------------------------------------------------

    def _index_networks(self) -> None:
        """List every VPC once and remember which ones match the marker."""
        self._network_matches = {}
        self._subnet_vpcs = {}
        try:
            for vpc in self._paginate('ec2', 'describe_vpcs', 'Vpcs'):
                record = normalize.network(vpc)
                self._network_matches[record.id] = self.matcher.matches(record.name, record.tags)
        except Exception as e:
            # Children can still match on their own names and tags
            logger.warning(f"Could not index networks: {e}",
                           extra={'resource_kind': ResourceKind.NETWORK.value})

    def network_matches(self, vpc_id: Optional[str]) -> bool:
        """Whether the VPC with this id carries the marker."""
        if not vpc_id:
            return False
        with self._lock:
            if vpc_id in self._network_matches:
                return self._network_matches[vpc_id]

        matched = False
        try:
            vpcs = self.clients.get_client('ec2').describe_vpcs(VpcIds=[vpc_id]).get('Vpcs', [])
            if vpcs:
                record = normalize.network(vpcs[0])
                matched = self.matcher.matches(record.name, record.tags)
        except SOFT_LOOKUP_ERRORS as e:
            logger.debug(f"VPC lookup failed for {vpc_id}: {e}")

        with self._lock:
            self._network_matches[vpc_id] = matched
        return matched

    def subnet_vpc(self, subnet_id: Optional[str]) -> Optional[str]:
        """Owning VPC of a subnet; None when the lookup fails."""
        if not subnet_id:
            return None
        with self._lock:
            if subnet_id in self._subnet_vpcs:
                return self._subnet_vpcs[subnet_id]

        vpc_id = None
        try:
            subnets = self.clients.get_client('ec2').describe_subnets(
                SubnetIds=[subnet_id]).get('Subnets', [])
            if subnets:
                vpc_id = subnets[0].get('VpcId')
        except SOFT_LOOKUP_ERRORS as e:
            logger.debug(f"Subnet lookup failed for {subnet_id}: {e}")

        with self._lock:
            self._subnet_vpcs[subnet_id] = vpc_id
        return vpc_id

    def _child_matches(self, record) -> bool:
        if self.matcher.matches(record.name, record.tags):
            return True
        vpc_id = getattr(record, 'vpc_id', None)
        if not vpc_id:
            vpc_id = self.subnet_vpc(getattr(record, 'subnet_id', None))
        return self.network_matches(vpc_id)

    # ------------------------------------------------------------------
    # Listers
    # ------------------------------------------------------------------

    def list_networks(self) -> List[Any]:
        records = [normalize.network(vpc) for vpc in self._paginate('ec2', 'describe_vpcs', 'Vpcs')]
        return [record for record in records if self.matcher.matches(record.name, record.tags)]

    def list_subnets(self) -> List[Any]:
        records = [normalize.subnet(raw) for raw in self._paginate('ec2', 'describe_subnets', 'Subnets')]
        return [record for record in records if self._child_matches(record)]

    def list_route_tables(self) -> List[Any]:
        records = [
            normalize.route_table(raw)
            for raw in self._paginate('ec2', 'describe_route_tables', 'RouteTables')
        ]
        return [record for record in records if self._child_matches(record)]

    def list_network_acls(self) -> List[Any]:
        records = [
            normalize.network_acl(raw)
            for raw in self._paginate('ec2', 'describe_network_acls', 'NetworkAcls')
        ]
        return [record for record in records if self._child_matches(record)]

    def list_nat_gateways(self) -> List[Any]:
        records = [
            normalize.nat_gateway(raw)
            for raw in self._paginate('ec2', 'describe_nat_gateways', 'NatGateways')
        ]
        return [record for record in records if self._child_matches(record)]

    def list_compute_instances(self) -> List[Any]:
        records = []
        for reservation in self._paginate('ec2', 'describe_instances', 'Reservations'):
            for raw in reservation.get('Instances', []):
                records.append(normalize.compute_instance(raw))
        return [record for record in records if self._child_matches(record)]

    def list_database_instances(self) -> List[Any]:
        records = [
            normalize.database_instance(raw)
            for raw in self._paginate('rds', 'describe_db_instances', 'DBInstances')
        ]
        return [record for record in records if self.matcher.matches(record.id, record.tags)]

    def list_database_proxies(self) -> List[Any]:
        rds = self.clients.get_client('rds')
        matched = []
        for raw in self._paginate('rds', 'describe_db_proxies', 'DBProxies'):
            if self.matcher.matches_text(raw.get('DBProxyName')):
                matched.append(normalize.database_proxy(raw))
                continue
            tags = self._soft_lookup(
                lambda: normalize.tags_from_list(
                    rds.list_tags_for_resource(ResourceName=raw['DBProxyArn']).get('TagList')),
                f"tags for proxy {raw.get('DBProxyName')}"
            )
            if self.matcher.matches_tags(tags):
                matched.append(normalize.database_proxy(raw, tags))
        return matched

    def list_compute_functions(self) -> List[Any]:
        lambda_client = self.clients.get_client('lambda')
        matched = []
        for raw in self._paginate('lambda', 'list_functions', 'Functions'):
            if self.matcher.matches_text(raw.get('FunctionName')):
                matched.append(normalize.compute_function(raw))
                continue
            tags = self._soft_lookup(
                lambda: lambda_client.list_tags(Resource=raw['FunctionArn']).get('Tags', {}),
                f"tags for function {raw.get('FunctionName')}"
            )
            if self.matcher.matches_tags(tags):
                matched.append(normalize.compute_function(raw, tags))
        return matched

    def list_api_endpoint_groups(self) -> List[Any]:
        apigateway = self.clients.get_client('apigateway')
        matched = []
        for raw in self._paginate('apigateway', 'get_rest_apis', 'items'):
            if not self.matcher.matches(raw.get('name'), raw.get('tags')):
                continue
            stages = self._soft_lookup(
                lambda: apigateway.get_stages(restApiId=raw['id']).get('item', []),
                f"stages for API {raw.get('name')}"
            )
            matched.append(normalize.api_endpoint_group(raw, stages))
        return matched

    def list_managed_secrets(self) -> List[Any]:
        records = [
            normalize.managed_secret(raw)
            for raw in self._paginate('secretsmanager', 'list_secrets', 'SecretList')
        ]
        return [record for record in records if self.matcher.matches(record.name, record.tags)]

    def list_object_store_buckets(self) -> List[Any]:
        s3 = self.clients.get_client('s3')
        matched = []
        for raw in s3.list_buckets().get('Buckets', []):
            if self.matcher.matches_text(raw.get('Name')):
                matched.append(normalize.object_store_bucket(raw))
                continue
            tags = self._soft_lookup(
                lambda: normalize.tags_from_list(
                    s3.get_bucket_tagging(Bucket=raw['Name']).get('TagSet')),
                f"tags for bucket {raw.get('Name')}"
            )
            if self.matcher.matches_tags(tags):
                matched.append(normalize.object_store_bucket(raw, tags))
        return matched

    def list_distributions(self) -> List[Any]:
        cloudfront = self.clients.get_client('cloudfront')
        matched = []
        for page in cloudfront.get_paginator('list_distributions').paginate():
            for raw in (page.get('DistributionList') or {}).get('Items') or []:
                record = normalize.distribution(raw)
                if self.matcher.matches_text(record.name) or self.matcher.matches_any(record.origins):
                    matched.append(record)
                    continue
                tags = self._soft_lookup(
                    lambda: normalize.tags_from_list(
                        cloudfront.list_tags_for_resource(Resource=raw['ARN'])
                        .get('Tags', {}).get('Items')),
                    f"tags for distribution {raw.get('Id')}"
                )
                if self.matcher.matches_tags(tags):
                    matched.append(normalize.distribution(raw, tags))
        return matched

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _paginate(self, service: str, operation: str, key: str) -> Iterable[Dict[str, Any]]:
        """Yield every item under ``key`` across all pages of an operation."""
        paginator = self.clients.get_client(service).get_paginator(operation)
        for page in paginator.paginate():
            for item in page.get(key, []) or []:
                yield item

    def _soft_lookup(self, lookup: Callable[[], Any], description: str) -> Any:
        """Run a secondary per-resource lookup; failure yields None."""
        try:
            return lookup()
        except SOFT_LOOKUP_ERRORS as e:
            logger.debug(f"Skipping {description}: {e}")
            return None
