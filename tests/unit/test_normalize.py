"""Unit tests for mapping SDK responses onto inventory records."""

from datetime import datetime

from oculus_deploy.inventory import normalize
from oculus_deploy.inventory.models import SubnetRole


def test_tags_from_list_skips_entries_without_key():
    tags = normalize.tags_from_list([
        {"Key": "Name", "Value": "oculus-vpc"},
        {"Value": "orphan"},
        {"Key": "empty"},
    ])
    assert tags == {"Name": "oculus-vpc", "empty": ""}


def test_tags_from_list_none():
    assert normalize.tags_from_list(None) == {}


def test_network_uses_name_tag():
    record = normalize.network({
        "VpcId": "vpc-1",
        "State": "available",
        "CidrBlock": "10.0.0.0/16",
        "IsDefault": False,
        "Tags": [{"Key": "Name", "Value": "OculusMiniStack/oculus-vpc"}],
    })
    assert record.id == "vpc-1"
    assert record.name == "OculusMiniStack/oculus-vpc"
    assert record.cidr_block == "10.0.0.0/16"
    assert record.kind == "network"


def test_subnet_role_from_cdk_tag():
    raw = {"SubnetId": "subnet-1", "VpcId": "vpc-1", "MapPublicIpOnLaunch": True,
           "Tags": [{"Key": "aws-cdk:subnet-type", "Value": "Isolated"}]}
    assert normalize.subnet(raw).role == SubnetRole.ISOLATED


def test_subnet_role_from_public_ip_mapping():
    assert normalize.subnet({"SubnetId": "s", "MapPublicIpOnLaunch": True}).role == SubnetRole.PUBLIC
    assert normalize.subnet({"SubnetId": "s", "MapPublicIpOnLaunch": False}).role == SubnetRole.PRIVATE


def test_route_table_main_flag():
    record = normalize.route_table({
        "RouteTableId": "rtb-1",
        "VpcId": "vpc-1",
        "Associations": [{"Main": False}, {"Main": True}],
    })
    assert record.main is True


def test_compute_instance_state():
    record = normalize.compute_instance({
        "InstanceId": "i-1",
        "State": {"Name": "running"},
        "InstanceType": "t3.micro",
        "SubnetId": "subnet-1",
    })
    assert record.state == "running"
    assert record.subnet_id == "subnet-1"
    assert record.vpc_id is None


def test_database_instance_endpoint():
    record = normalize.database_instance({
        "DBInstanceIdentifier": "oculus-db",
        "Engine": "postgres",
        "DBInstanceStatus": "available",
        "Endpoint": {"Address": "oculus-db.abc.us-east-1.rds.amazonaws.com", "Port": 5432},
        "DBSubnetGroup": {"VpcId": "vpc-1"},
        "TagList": [{"Key": "project", "Value": "oculus"}],
    })
    assert record.name == "oculus-db"
    assert record.endpoint_port == 5432
    assert record.vpc_id == "vpc-1"
    assert record.tags == {"project": "oculus"}


def test_compute_function_environment_stringified():
    record = normalize.compute_function({
        "FunctionName": "oculus-surveys",
        "FunctionArn": "arn:aws:lambda:us-east-1:123456789012:function:oculus-surveys",
        "Runtime": "nodejs20.x",
        "Environment": {"Variables": {"PGPORT": 5432}},
    })
    assert record.environment == {"PGPORT": "5432"}


def test_api_endpoint_group_detects_prod_stage():
    record = normalize.api_endpoint_group(
        {"id": "abc123", "name": "oculus-api", "createdDate": datetime(2024, 1, 1)},
        [{"stageName": "dev"}, {"stageName": "prod"}],
    )
    assert record.has_prod_deployment is True
    assert record.stage_name == "prod"


def test_api_endpoint_group_without_stages():
    record = normalize.api_endpoint_group({"id": "abc123", "name": "oculus-api"}, None)
    assert record.has_prod_deployment is False
    assert record.stage_name is None


def test_managed_secret_uses_arn_as_id():
    arn = "arn:aws:secretsmanager:us-east-1:123456789012:secret:oculus_db_secret-AbCd"
    record = normalize.managed_secret({"ARN": arn, "Name": "oculus_db_secret"})
    assert record.id == arn
    assert record.arn == arn


def test_bucket_ignores_non_datetime_creation_date():
    assert normalize.object_store_bucket({"Name": "b", "CreationDate": "yesterday"}).created_at is None


def test_distribution_origins_and_comment():
    record = normalize.distribution({
        "Id": "E1",
        "Comment": "Oculus site",
        "DomainName": "d111.cloudfront.net",
        "Origins": {"Items": [{"DomainName": "oculus-site.s3.amazonaws.com"}, {}]},
    })
    assert record.name == "Oculus site"
    assert record.origins == ["oculus-site.s3.amazonaws.com"]


def test_distribution_empty_comment_has_no_name():
    assert normalize.distribution({"Id": "E1", "Comment": ""}).name is None
