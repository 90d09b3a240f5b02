"""Mapping of AWS SDK response shapes onto inventory records.

This is the only module that reads provider field names. Every function
takes one raw item as returned by boto3 and returns a typed record.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from oculus_deploy.inventory.models import (
    ApiEndpointGroupRecord,
    ComputeFunctionRecord,
    ComputeInstanceRecord,
    DatabaseInstanceRecord,
    DatabaseProxyRecord,
    DistributionRecord,
    ManagedSecretRecord,
    NatGatewayRecord,
    NetworkAclRecord,
    NetworkRecord,
    ObjectStoreBucketRecord,
    RouteTableRecord,
    SubnetRecord,
    SubnetRole,
)

# Tag CDK puts on the subnets it creates
CDK_SUBNET_TYPE_TAG = 'aws-cdk:subnet-type'

PROD_STAGE = 'prod'


def tags_from_list(tags: Optional[List[Dict[str, Any]]]) -> Dict[str, str]:
    """Convert a ``[{'Key': ..., 'Value': ...}]`` list into a dict.

    RDS, EC2, S3, Secrets Manager and CloudFront all use this shape.
    """
    result = {}
    for tag in tags or []:
        key = tag.get('Key')
        if key:
            result[key] = tag.get('Value') or ''
    return result


def name_from_tags(tags: Dict[str, str]) -> Optional[str]:
    return tags.get('Name') or None


def subnet_role(raw: Dict[str, Any], tags: Dict[str, str]) -> SubnetRole:
    """Classify a subnet as public, private or isolated.

    The CDK subnet-type tag wins; otherwise a subnet that auto-assigns public
    addresses is public and anything else is private.
    """
    cdk_type = tags.get(CDK_SUBNET_TYPE_TAG, '').strip().lower()
    if cdk_type == 'public':
        return SubnetRole.PUBLIC
    if cdk_type == 'isolated':
        return SubnetRole.ISOLATED
    if cdk_type == 'private':
        return SubnetRole.PRIVATE
    if raw.get('MapPublicIpOnLaunch'):
        return SubnetRole.PUBLIC
    return SubnetRole.PRIVATE


def network(raw: Dict[str, Any]) -> NetworkRecord:
    tags = tags_from_list(raw.get('Tags'))
    return NetworkRecord(
        id=raw['VpcId'],
        name=name_from_tags(tags),
        tags=tags,
        state=raw.get('State'),
        cidr_block=raw.get('CidrBlock'),
        is_default=bool(raw.get('IsDefault', False)),
    )


def subnet(raw: Dict[str, Any]) -> SubnetRecord:
    tags = tags_from_list(raw.get('Tags'))
    return SubnetRecord(
        id=raw['SubnetId'],
        name=name_from_tags(tags),
        tags=tags,
        vpc_id=raw.get('VpcId'),
        availability_zone=raw.get('AvailabilityZone'),
        cidr_block=raw.get('CidrBlock'),
        role=subnet_role(raw, tags),
    )


def route_table(raw: Dict[str, Any]) -> RouteTableRecord:
    tags = tags_from_list(raw.get('Tags'))
    associations = raw.get('Associations') or []
    return RouteTableRecord(
        id=raw['RouteTableId'],
        name=name_from_tags(tags),
        tags=tags,
        vpc_id=raw.get('VpcId'),
        main=any(assoc.get('Main') for assoc in associations),
    )


def network_acl(raw: Dict[str, Any]) -> NetworkAclRecord:
    tags = tags_from_list(raw.get('Tags'))
    return NetworkAclRecord(
        id=raw['NetworkAclId'],
        name=name_from_tags(tags),
        tags=tags,
        vpc_id=raw.get('VpcId'),
        is_default=bool(raw.get('IsDefault', False)),
    )


def nat_gateway(raw: Dict[str, Any]) -> NatGatewayRecord:
    tags = tags_from_list(raw.get('Tags'))
    return NatGatewayRecord(
        id=raw['NatGatewayId'],
        name=name_from_tags(tags),
        tags=tags,
        vpc_id=raw.get('VpcId'),
        subnet_id=raw.get('SubnetId'),
        state=raw.get('State'),
    )


def compute_instance(raw: Dict[str, Any]) -> ComputeInstanceRecord:
    tags = tags_from_list(raw.get('Tags'))
    return ComputeInstanceRecord(
        id=raw['InstanceId'],
        name=name_from_tags(tags),
        tags=tags,
        vpc_id=raw.get('VpcId'),
        subnet_id=raw.get('SubnetId'),
        state=(raw.get('State') or {}).get('Name'),
        instance_type=raw.get('InstanceType'),
    )


def database_instance(raw: Dict[str, Any]) -> DatabaseInstanceRecord:
    tags = tags_from_list(raw.get('TagList'))
    endpoint = raw.get('Endpoint') or {}
    subnet_group = raw.get('DBSubnetGroup') or {}
    return DatabaseInstanceRecord(
        id=raw['DBInstanceIdentifier'],
        name=raw.get('DBName') or raw['DBInstanceIdentifier'],
        tags=tags,
        engine=raw.get('Engine'),
        status=raw.get('DBInstanceStatus'),
        endpoint_address=endpoint.get('Address'),
        endpoint_port=endpoint.get('Port'),
        vpc_id=subnet_group.get('VpcId'),
    )


def database_proxy(raw: Dict[str, Any], tags: Optional[Dict[str, str]] = None) -> DatabaseProxyRecord:
    return DatabaseProxyRecord(
        id=raw['DBProxyName'],
        name=raw['DBProxyName'],
        tags=tags or {},
        status=raw.get('Status'),
        endpoint=raw.get('Endpoint'),
        arn=raw.get('DBProxyArn'),
        engine_family=raw.get('EngineFamily'),
        vpc_id=raw.get('VpcId'),
    )


def compute_function(raw: Dict[str, Any], tags: Optional[Dict[str, str]] = None) -> ComputeFunctionRecord:
    variables = (raw.get('Environment') or {}).get('Variables') or {}
    return ComputeFunctionRecord(
        id=raw['FunctionName'],
        name=raw['FunctionName'],
        tags=tags or {},
        runtime=raw.get('Runtime'),
        arn=raw.get('FunctionArn'),
        environment={key: str(value) for key, value in variables.items()},
        last_modified=raw.get('LastModified'),
    )


def api_endpoint_group(
    raw: Dict[str, Any], stages: Optional[List[Dict[str, Any]]] = None
) -> ApiEndpointGroupRecord:
    """REST API record; ``stages`` is the result of the per-API stage lookup."""
    prod = next((stage for stage in stages or [] if stage.get('stageName') == PROD_STAGE), None)
    return ApiEndpointGroupRecord(
        id=raw['id'],
        name=raw.get('name'),
        tags={key: str(value) for key, value in (raw.get('tags') or {}).items()},
        stage_name=prod.get('stageName') if prod else None,
        has_prod_deployment=prod is not None,
        created_at=raw.get('createdDate'),
    )


def managed_secret(raw: Dict[str, Any]) -> ManagedSecretRecord:
    return ManagedSecretRecord(
        id=raw['ARN'],
        name=raw.get('Name'),
        tags=tags_from_list(raw.get('Tags')),
        arn=raw.get('ARN'),
    )


def object_store_bucket(raw: Dict[str, Any], tags: Optional[Dict[str, str]] = None) -> ObjectStoreBucketRecord:
    created = raw.get('CreationDate')
    return ObjectStoreBucketRecord(
        id=raw['Name'],
        name=raw['Name'],
        tags=tags or {},
        created_at=created if isinstance(created, datetime) else None,
    )


def distribution(raw: Dict[str, Any], tags: Optional[Dict[str, str]] = None) -> DistributionRecord:
    origins = [
        origin.get('DomainName', '')
        for origin in (raw.get('Origins') or {}).get('Items') or []
    ]
    return DistributionRecord(
        id=raw['Id'],
        name=raw.get('Comment') or None,
        tags=tags or {},
        domain_name=raw.get('DomainName'),
        status=raw.get('Status'),
        arn=raw.get('ARN'),
        origins=[origin for origin in origins if origin],
    )
