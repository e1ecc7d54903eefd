"""
AWS resource provider backed by boto3.

Maps each cluster resource kind onto ECS, IAM, EC2 and Auto Scaling calls and
translates botocore failures into TransientError or PermanentError.
"""

import base64
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import PermanentError, ProviderError, TransientError
from ..provider import Provider
from ..resources import ResourceKind
from ..state import ResourceRecord
from ..tags import from_aws_tags, to_aws_tags

logger = logging.getLogger(__name__)

ECS_AMI_PARAMETER = "/aws/service/ecs/optimized-ami/amazon-linux-2/recommended/image_id"
ECS_SERVICE_ROLE_POLICY = "arn:aws:iam::aws:policy/service-role/AmazonEC2ContainerServiceRole"
ECS_INSTANCE_ROLE_POLICY = "arn:aws:iam::aws:policy/service-role/AmazonEC2ContainerServiceforEC2Role"

# Error codes that clear up on their own (eventual consistency, throttling, in-flight deletes)
TRANSIENT_ERROR_CODES = {
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "TooManyRequestsException",
    "ServiceUnavailable",
    "InternalError",
    "InternalFailure",
    "DependencyViolation",
    "NoSuchEntity",
    "ResourceInUse",
    "ResourceInUseFault",
    "ScalingActivityInProgress",
    "ScalingActivityInProgressFault",
    "ClusterContainsContainerInstancesException",
    "ClusterContainsTasksException",
    "UpdateInProgressException",
}

# Messages showing a just-created instance profile is not visible yet
PROPAGATION_HINTS = ("instance profile", "iaminstanceprofile", "invalid iaminstanceprofile")

NOT_FOUND_CODES = {
    "NoSuchEntity",
    "InvalidGroup.NotFound",
    "InvalidLaunchTemplateName.NotFoundException",
    "InvalidLaunchTemplateId.NotFound",
    "ClusterNotFoundException",
}


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


def _error_message(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Message", str(error))


def _trust_policy(service: str) -> str:
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [{
            "Effect": "Allow",
            "Principal": {"Service": service},
            "Action": "sts:AssumeRole",
        }],
    })


def classify_error(error: Exception, kind: ResourceKind, name: str, action: str) -> ProviderError:
    """
    Translate a boto3 failure into the provider error taxonomy.

    Args:
        error: ClientError or BotoCoreError raised by boto3
        kind: Resource kind being operated on
        name: Resource name
        action: Verb used in the message ("create", "delete", "retrieve")

    Returns:
        TransientError or PermanentError
    """
    if isinstance(error, ClientError):
        code = _error_code(error)
        message = _error_message(error)
        text = f"Failed to {action} {kind.label} [{name}]: {code}: {message}"
        if code in TRANSIENT_ERROR_CODES:
            return TransientError(text, kind=kind, resource_name=name, cause=error)
        if code in ("InvalidParameterValue", "ValidationError") and any(
            hint in message.lower() for hint in PROPAGATION_HINTS
        ):
            return TransientError(text, kind=kind, resource_name=name, cause=error)
        return PermanentError(text, kind=kind, resource_name=name, cause=error)

    # Connection-level failures from botocore
    text = f"Failed to {action} {kind.label} [{name}]: {error}"
    return TransientError(text, kind=kind, resource_name=name, cause=error)


class AwsProvider(Provider):
    """Provider talking to AWS through boto3 clients."""

    def __init__(self, region: Optional[str] = None, session: Optional[boto3.session.Session] = None,
                 vpc_id: Optional[str] = None):
        self.session = session or boto3.session.Session(region_name=region)
        self.region = region or self.session.region_name
        self.vpc_id = vpc_id
        self._clients: Dict[str, Any] = {}
        self._network: Dict[Optional[str], Tuple[str, List[str]]] = {}

    def _client(self, service: str):
        if service not in self._clients:
            self._clients[service] = self.session.client(service, region_name=self.region)
        return self._clients[service]

    # Provider interface

    def get_by_name(self, kind: ResourceKind, name: str) -> Optional[ResourceRecord]:
        try:
            return self._getters[kind](self, name)
        except (ClientError, BotoCoreError) as e:
            raise classify_error(e, kind, name, "retrieve")

    def list_tags(self, kind: ResourceKind, name: str) -> Dict[str, str]:
        try:
            return self._taggers[kind](self, name)
        except (ClientError, BotoCoreError) as e:
            raise classify_error(e, kind, name, "retrieve tags for")

    def create(self, kind: ResourceKind, name: str, spec: Dict[str, Any]) -> None:
        logger.info(f"Creating {kind.label} [{name}]")
        try:
            self._creators[kind](self, name, spec)
        except (ClientError, BotoCoreError) as e:
            raise classify_error(e, kind, name, "create")

    def delete(self, kind: ResourceKind, name: str) -> None:
        logger.info(f"Deleting {kind.label} [{name}]")
        try:
            self._deleters[kind](self, name)
        except (ClientError, BotoCoreError) as e:
            if isinstance(e, ClientError) and _error_code(e) in NOT_FOUND_CODES:
                logger.debug(f"{kind.label} [{name}] already gone")
                return
            raise classify_error(e, kind, name, "delete")

    # Networking

    def resolve_network(self, vpc_id: Optional[str] = None) -> Tuple[str, List[str]]:
        """
        Resolve the VPC and subnets container instances run in.

        Args:
            vpc_id: Explicit VPC ID; the account's default VPC is used when omitted

        Returns:
            Tuple of (vpc_id, subnet_ids)
        """
        vpc_id = vpc_id or self.vpc_id
        if vpc_id in self._network:
            return self._network[vpc_id]

        ec2 = self._client("ec2")
        resolved = vpc_id
        if not resolved:
            response = ec2.describe_vpcs(Filters=[{"Name": "isDefault", "Values": ["true"]}])
            vpcs = response.get("Vpcs", [])
            if not vpcs:
                raise PermanentError("No default VPC found. Specify a VPC ID.")
            resolved = vpcs[0]["VpcId"]

        response = ec2.describe_subnets(Filters=[{"Name": "vpc-id", "Values": [resolved]}])
        subnet_ids = [subnet["SubnetId"] for subnet in response.get("Subnets", [])]
        if not subnet_ids:
            raise PermanentError(f"No subnets found in VPC [{resolved}]")

        self._network[vpc_id] = (resolved, subnet_ids)
        return resolved, subnet_ids

    def network_info(self) -> Dict[str, Any]:
        try:
            vpc_id, subnet_ids = self.resolve_network()
        except ClientError as e:
            raise PermanentError(f"Failed to resolve network: {_error_code(e)}: {_error_message(e)}", cause=e)
        except BotoCoreError as e:
            raise TransientError(f"Failed to resolve network: {e}", cause=e)
        return {"region": self.region, "vpc_id": vpc_id, "subnets": subnet_ids}

    def default_image_id(self) -> str:
        """Latest ECS-optimized AMI for the region."""
        response = self._client("ssm").get_parameter(Name=ECS_AMI_PARAMETER)
        return response["Parameter"]["Value"]

    # ECS cluster

    def _describe_cluster(self, name: str) -> Optional[Dict[str, Any]]:
        response = self._client("ecs").describe_clusters(clusters=[name])
        clusters = response.get("clusters", [])
        return clusters[0] if clusters else None

    def _get_cluster(self, name: str) -> Optional[ResourceRecord]:
        cluster = self._describe_cluster(name)
        if cluster is None:
            return None
        return ResourceRecord(
            kind=ResourceKind.COMPUTE_CLUSTER,
            name=name,
            status=cluster.get("status"),
            attributes={
                "arn": cluster.get("clusterArn"),
                "active_services": cluster.get("activeServicesCount", 0),
                "running_tasks": cluster.get("runningTasksCount", 0),
                "pending_tasks": cluster.get("pendingTasksCount", 0),
                "container_instances": cluster.get("registeredContainerInstancesCount", 0),
            },
        )

    def _cluster_tags(self, name: str) -> Dict[str, str]:
        cluster = self._describe_cluster(name)
        if cluster is None:
            return {}
        response = self._client("ecs").list_tags_for_resource(resourceArn=cluster["clusterArn"])
        return {tag["key"]: tag["value"] for tag in response.get("tags", [])}

    def _create_cluster(self, name: str, spec: Dict[str, Any]) -> None:
        tags = [{"key": k, "value": v} for k, v in sorted(spec.get("tags", {}).items())]
        self._client("ecs").create_cluster(clusterName=name, tags=tags)

    def _delete_cluster(self, name: str) -> None:
        self._client("ecs").delete_cluster(cluster=name)

    # IAM roles and instance profiles

    def _get_role(self, name: str) -> Optional[ResourceRecord]:
        try:
            role = self._client("iam").get_role(RoleName=name)["Role"]
        except ClientError as e:
            if _error_code(e) == "NoSuchEntity":
                return None
            raise
        return ResourceRecord(kind=ResourceKind.SERVICE_ROLE, name=name, attributes={"arn": role.get("Arn")})

    def _role_tags(self, name: str) -> Dict[str, str]:
        return from_aws_tags(self._client("iam").list_role_tags(RoleName=name).get("Tags"))

    def _ensure_role(self, name: str, service: str, policy_arn: str, tags: Dict[str, str]) -> None:
        iam = self._client("iam")
        try:
            iam.create_role(
                RoleName=name,
                AssumeRolePolicyDocument=_trust_policy(service),
                Description="Managed by clusterctl",
                Tags=to_aws_tags(tags),
            )
        except ClientError as e:
            # A previous attempt may have created the role before failing
            if _error_code(e) != "EntityAlreadyExists":
                raise
        iam.attach_role_policy(RoleName=name, PolicyArn=policy_arn)

    def _remove_role(self, name: str) -> None:
        iam = self._client("iam")
        try:
            attached = iam.list_attached_role_policies(RoleName=name).get("AttachedPolicies", [])
        except ClientError as e:
            if _error_code(e) == "NoSuchEntity":
                return
            raise
        for policy in attached:
            iam.detach_role_policy(RoleName=name, PolicyArn=policy["PolicyArn"])
        iam.delete_role(RoleName=name)

    def _create_service_role(self, name: str, spec: Dict[str, Any]) -> None:
        self._ensure_role(name, "ecs.amazonaws.com", ECS_SERVICE_ROLE_POLICY, spec.get("tags", {}))

    def _get_instance_profile(self, name: str) -> Optional[ResourceRecord]:
        try:
            profile = self._client("iam").get_instance_profile(InstanceProfileName=name)["InstanceProfile"]
        except ClientError as e:
            if _error_code(e) == "NoSuchEntity":
                return None
            raise
        return ResourceRecord(
            kind=ResourceKind.INSTANCE_PROFILE,
            name=name,
            attributes={
                "arn": profile.get("Arn"),
                "roles": [role["RoleName"] for role in profile.get("Roles", [])],
            },
        )

    def _instance_profile_tags(self, name: str) -> Dict[str, str]:
        response = self._client("iam").list_instance_profile_tags(InstanceProfileName=name)
        return from_aws_tags(response.get("Tags"))

    def _create_instance_profile(self, name: str, spec: Dict[str, Any]) -> None:
        iam = self._client("iam")
        tags = spec.get("tags", {})

        # The profile is backed by a role of the same name
        self._ensure_role(name, "ec2.amazonaws.com", ECS_INSTANCE_ROLE_POLICY, tags)

        try:
            iam.create_instance_profile(InstanceProfileName=name, Tags=to_aws_tags(tags))
        except ClientError as e:
            if _error_code(e) != "EntityAlreadyExists":
                raise

        profile = iam.get_instance_profile(InstanceProfileName=name)["InstanceProfile"]
        if not any(role["RoleName"] == name for role in profile.get("Roles", [])):
            iam.add_role_to_instance_profile(InstanceProfileName=name, RoleName=name)

    def _delete_instance_profile(self, name: str) -> None:
        iam = self._client("iam")
        try:
            profile = iam.get_instance_profile(InstanceProfileName=name)["InstanceProfile"]
        except ClientError as e:
            if _error_code(e) != "NoSuchEntity":
                raise
            profile = None

        if profile is not None:
            for role in profile.get("Roles", []):
                iam.remove_role_from_instance_profile(InstanceProfileName=name, RoleName=role["RoleName"])
            iam.delete_instance_profile(InstanceProfileName=name)

        self._remove_role(name)

    # Security group

    def _find_security_group(self, name: str, vpc_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        filters = [{"Name": "group-name", "Values": [name]}]
        vpc_id = vpc_id or self.vpc_id
        if vpc_id:
            filters.append({"Name": "vpc-id", "Values": [vpc_id]})
        groups = self._client("ec2").describe_security_groups(Filters=filters).get("SecurityGroups", [])
        return groups[0] if groups else None

    def _get_security_group(self, name: str) -> Optional[ResourceRecord]:
        group = self._find_security_group(name)
        if group is None:
            return None
        return ResourceRecord(
            kind=ResourceKind.INSTANCE_SECURITY_GROUP,
            name=name,
            attributes={"group_id": group["GroupId"], "vpc_id": group.get("VpcId")},
        )

    def _security_group_tags(self, name: str) -> Dict[str, str]:
        group = self._find_security_group(name)
        return from_aws_tags(group.get("Tags")) if group else {}

    def _create_security_group(self, name: str, spec: Dict[str, Any]) -> None:
        ec2 = self._client("ec2")
        vpc_id, _ = self.resolve_network(spec.get("vpc_id"))

        try:
            group_id = ec2.create_security_group(
                GroupName=name,
                Description=spec.get("description") or name,
                VpcId=vpc_id,
                TagSpecifications=[{
                    "ResourceType": "security-group",
                    "Tags": to_aws_tags(spec.get("tags", {})),
                }],
            )["GroupId"]
        except ClientError as e:
            if _error_code(e) != "InvalidGroup.Duplicate":
                raise
            group_id = self._find_security_group(name, vpc_id)["GroupId"]

        permissions = [
            {
                "IpProtocol": rule["protocol"],
                "FromPort": rule["from_port"],
                "ToPort": rule["to_port"],
                "IpRanges": [{"CidrIp": rule["cidr"]}],
            }
            for rule in spec.get("ingress", [])
        ]
        if permissions:
            try:
                ec2.authorize_security_group_ingress(GroupId=group_id, IpPermissions=permissions)
            except ClientError as e:
                if _error_code(e) != "InvalidPermission.Duplicate":
                    raise

    def _delete_security_group(self, name: str) -> None:
        group = self._find_security_group(name)
        if group is None:
            return
        self._client("ec2").delete_security_group(GroupId=group["GroupId"])

    # Launch template

    def _describe_launch_template(self, name: str) -> Optional[Dict[str, Any]]:
        try:
            templates = self._client("ec2").describe_launch_templates(
                LaunchTemplateNames=[name]
            ).get("LaunchTemplates", [])
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return None
            raise
        return templates[0] if templates else None

    def _get_launch_template(self, name: str) -> Optional[ResourceRecord]:
        template = self._describe_launch_template(name)
        if template is None:
            return None

        ec2 = self._client("ec2")
        versions = ec2.describe_launch_template_versions(
            LaunchTemplateName=name, Versions=["$Latest"]
        ).get("LaunchTemplateVersions", [])
        data = versions[0].get("LaunchTemplateData", {}) if versions else {}

        profile = data.get("IamInstanceProfile", {})
        profile_name = profile.get("Name") or profile.get("Arn", "").rsplit("/", 1)[-1] or None

        group_names = self._security_group_names(data.get("SecurityGroupIds", []))

        return ResourceRecord(
            kind=ResourceKind.LAUNCH_TEMPLATE,
            name=name,
            attributes={
                "template_id": template.get("LaunchTemplateId"),
                "instance_type": data.get("InstanceType"),
                "image_id": data.get("ImageId"),
                "key_name": data.get("KeyName"),
                "instance_profile": profile_name,
                "security_groups": group_names,
            },
        )

    def _security_group_names(self, group_ids: List[str]) -> List[str]:
        if not group_ids:
            return []
        try:
            groups = self._client("ec2").describe_security_groups(GroupIds=group_ids).get("SecurityGroups", [])
        except ClientError as e:
            if _error_code(e) != "InvalidGroup.NotFound":
                raise
            # A group deleted ahead of the template can only be shown by id.
            logger.debug(f"Security groups {group_ids} no longer exist: {_error_message(e)}")
            return list(group_ids)
        return [group["GroupName"] for group in groups]

    def _launch_template_tags(self, name: str) -> Dict[str, str]:
        template = self._describe_launch_template(name)
        return from_aws_tags(template.get("Tags")) if template else {}

    def _create_launch_template(self, name: str, spec: Dict[str, Any]) -> None:
        ec2 = self._client("ec2")

        key_pair = (spec.get("key_pair") or "").strip()
        if key_pair:
            try:
                ec2.describe_key_pairs(KeyNames=[key_pair])
            except ClientError as e:
                if _error_code(e) == "InvalidKeyPair.NotFound":
                    raise PermanentError(f"Key pair [{key_pair}] was not found",
                                         kind=ResourceKind.LAUNCH_TEMPLATE, resource_name=name, cause=e)
                raise

        # Dependencies created moments ago may not be visible yet
        group = self._find_security_group(spec["security_group"], spec.get("vpc_id"))
        if group is None:
            raise TransientError(f"Security group [{spec['security_group']}] is not visible yet",
                                 kind=ResourceKind.LAUNCH_TEMPLATE, resource_name=name)
        if self._get_instance_profile(spec["instance_profile"]) is None:
            raise TransientError(f"Instance profile [{spec['instance_profile']}] is not visible yet",
                                 kind=ResourceKind.LAUNCH_TEMPLATE, resource_name=name)

        data = {
            "ImageId": spec.get("image_id") or self.default_image_id(),
            "InstanceType": spec["instance_type"],
            "IamInstanceProfile": {"Name": spec["instance_profile"]},
            "SecurityGroupIds": [group["GroupId"]],
            "UserData": base64.b64encode(spec.get("user_data", "").encode("utf-8")).decode("ascii"),
            "TagSpecifications": [{"ResourceType": "instance", "Tags": to_aws_tags(spec.get("tags", {}))}],
        }
        if key_pair:
            data["KeyName"] = key_pair

        try:
            ec2.create_launch_template(
                LaunchTemplateName=name,
                LaunchTemplateData=data,
                TagSpecifications=[{
                    "ResourceType": "launch-template",
                    "Tags": to_aws_tags(spec.get("tags", {})),
                }],
            )
        except ClientError as e:
            if _error_code(e) != "InvalidLaunchTemplateName.AlreadyExistsException":
                raise

    def _delete_launch_template(self, name: str) -> None:
        self._client("ec2").delete_launch_template(LaunchTemplateName=name)

    # Auto Scaling group

    def _describe_scaling_group(self, name: str) -> Optional[Dict[str, Any]]:
        groups = self._client("autoscaling").describe_auto_scaling_groups(
            AutoScalingGroupNames=[name]
        ).get("AutoScalingGroups", [])
        return groups[0] if groups else None

    def _get_scaling_group(self, name: str) -> Optional[ResourceRecord]:
        group = self._describe_scaling_group(name)
        if group is None:
            return None
        template = group.get("LaunchTemplate", {})
        return ResourceRecord(
            kind=ResourceKind.SCALING_GROUP,
            name=name,
            # Status is only present while the group is being deleted
            status=group.get("Status"),
            attributes={
                "launch_template": template.get("LaunchTemplateName"),
                "instance_count": len(group.get("Instances", [])),
                "desired_capacity": group.get("DesiredCapacity", 0),
                "min_size": group.get("MinSize", 0),
                "max_size": group.get("MaxSize", 0),
            },
        )

    def _scaling_group_tags(self, name: str) -> Dict[str, str]:
        group = self._describe_scaling_group(name)
        return from_aws_tags(group.get("Tags")) if group else {}

    def _create_scaling_group(self, name: str, spec: Dict[str, Any]) -> None:
        _, subnet_ids = self.resolve_network(spec.get("vpc_id"))
        tags = [
            {
                "ResourceId": name,
                "ResourceType": "auto-scaling-group",
                "Key": key,
                "Value": value,
                "PropagateAtLaunch": True,
            }
            for key, value in sorted(spec.get("tags", {}).items())
        ]
        try:
            self._client("autoscaling").create_auto_scaling_group(
                AutoScalingGroupName=name,
                LaunchTemplate={"LaunchTemplateName": spec["launch_template"], "Version": "$Latest"},
                MinSize=spec.get("min_size", 0),
                MaxSize=spec["max_size"],
                DesiredCapacity=spec["desired_capacity"],
                VPCZoneIdentifier=",".join(subnet_ids),
                Tags=tags,
            )
        except ClientError as e:
            if _error_code(e) != "AlreadyExists":
                raise
            existing = self._describe_scaling_group(name)
            if existing is not None and existing.get("Status"):
                raise TransientError(f"Auto Scaling Group [{name}] is still being deleted",
                                     kind=ResourceKind.SCALING_GROUP, resource_name=name, cause=e)

    def _delete_scaling_group(self, name: str) -> None:
        # ForceDelete terminates the instances along with the group
        self._client("autoscaling").delete_auto_scaling_group(AutoScalingGroupName=name, ForceDelete=True)

    _getters = {
        ResourceKind.COMPUTE_CLUSTER: _get_cluster,
        ResourceKind.SERVICE_ROLE: _get_role,
        ResourceKind.INSTANCE_PROFILE: _get_instance_profile,
        ResourceKind.INSTANCE_SECURITY_GROUP: _get_security_group,
        ResourceKind.LAUNCH_TEMPLATE: _get_launch_template,
        ResourceKind.SCALING_GROUP: _get_scaling_group,
    }

    _taggers = {
        ResourceKind.COMPUTE_CLUSTER: _cluster_tags,
        ResourceKind.SERVICE_ROLE: _role_tags,
        ResourceKind.INSTANCE_PROFILE: _instance_profile_tags,
        ResourceKind.INSTANCE_SECURITY_GROUP: _security_group_tags,
        ResourceKind.LAUNCH_TEMPLATE: _launch_template_tags,
        ResourceKind.SCALING_GROUP: _scaling_group_tags,
    }

    _creators = {
        ResourceKind.COMPUTE_CLUSTER: _create_cluster,
        ResourceKind.SERVICE_ROLE: _create_service_role,
        ResourceKind.INSTANCE_PROFILE: _create_instance_profile,
        ResourceKind.INSTANCE_SECURITY_GROUP: _create_security_group,
        ResourceKind.LAUNCH_TEMPLATE: _create_launch_template,
        ResourceKind.SCALING_GROUP: _create_scaling_group,
    }

    _deleters = {
        ResourceKind.COMPUTE_CLUSTER: _delete_cluster,
        ResourceKind.SERVICE_ROLE: _remove_role,
        ResourceKind.INSTANCE_PROFILE: _delete_instance_profile,
        ResourceKind.INSTANCE_SECURITY_GROUP: _delete_security_group,
        ResourceKind.LAUNCH_TEMPLATE: _delete_launch_template,
        ResourceKind.SCALING_GROUP: _delete_scaling_group,
    }
