import json

import aws_cdk as core
import aws_cdk.assertions as assertions

from managed_ad_fsx.managed_msad_stack import ManagedMsadStack

# これを実行するには、プロジェクトのルートディレクトリから `python -m pytest` を実行してください

DOMAIN_NAME = "corp.non-97.net"


def _template():
    app = core.App()
    stack = ManagedMsadStack(app, "managed-msad", domain_name=DOMAIN_NAME)
    return assertions.Template.from_stack(stack)


def test_vpc_created():
    template = _template()

    # NAT Gatewayなし、Public/Isolatedサブネット x 2AZ
    template.has_resource_properties("AWS::EC2::VPC", {
        "CidrBlock": "10.0.1.0/24",
        "EnableDnsHostnames": True,
        "EnableDnsSupport": True
    })
    template.resource_count_is("AWS::EC2::Subnet", 4)
    template.resource_count_is("AWS::EC2::NatGateway", 0)


def test_s3_gateway_endpoint_created():
    template = _template()

    template.resource_count_is("AWS::EC2::VPCEndpoint", 1)
    template.has_resource_properties("AWS::EC2::VPCEndpoint", {
        "VpcEndpointType": "Gateway"
    })


def test_directory_secret_created():
    template = _template()

    template.has_resource_properties("AWS::SecretsManager::Secret", {
        "Name": f"/managedMSAD/{DOMAIN_NAME}/Admin",
        "GenerateSecretString": {
            "GenerateStringKey": "password",
            "PasswordLength": 32,
            "ExcludeCharacters": "\\",
            "RequireEachIncludedType": True,
            "SecretStringTemplate": '{"userName": "Admin"}'
        }
    })


def test_managed_microsoft_ad_created():
    template = _template()

    template.has_resource_properties("AWS::DirectoryService::MicrosoftAD", {
        "Name": DOMAIN_NAME,
        "Edition": "Standard",
        "CreateAlias": False,
        "EnableSso": False
    })


def test_directory_password_is_dynamic_reference():
    template = _template()
    password = assertions.Capture()

    template.has_resource_properties("AWS::DirectoryService::MicrosoftAD", {
        "Password": password
    })

    # パスワードは平文ではなく Secrets Manager の動的参照
    serialized = json.dumps(password.as_object())
    assert "{{resolve:secretsmanager:" in serialized
    assert ":SecretString:password}}" in serialized


def test_dhcp_options_use_directory_dns():
    template = _template()

    template.has_resource_properties("AWS::EC2::DHCPOptions", {
        "DomainName": DOMAIN_NAME,
        "DomainNameServers": {
            "Fn::GetAtt": [assertions.Match.any_value(), "DnsIpAddresses"]
        }
    })
    template.resource_count_is("AWS::EC2::VPCDHCPOptionsAssociation", 1)


def test_domain_join_instance_created():
    template = _template()

    template.resource_count_is("AWS::EC2::Instance", 1)
    template.has_resource_properties("AWS::EC2::Instance", {
        "InstanceType": "t3.micro",
        "SubnetId": {"Ref": assertions.Match.string_like_regexp("VpcPublicSubnet")},
        "BlockDeviceMappings": [{
            "DeviceName": "/dev/sda1",
            "Ebs": {"VolumeSize": 30, "VolumeType": "gp3"}
        }]
    })


def test_domain_join_ssm_association():
    template = _template()
    directory_id = list(template.find_resources("AWS::DirectoryService::MicrosoftAD").keys())[0]

    template.has_resource_properties("AWS::EC2::Instance", {
        "SsmAssociations": [{
            "DocumentName": "AWS-JoinDirectoryServiceDomain",
            "AssociationParameters": [
                {"Key": "directoryId", "Value": [{"Ref": directory_id}]},
                {"Key": "directoryName", "Value": [DOMAIN_NAME]}
            ]
        }]
    })


def test_directory_outputs_exported():
    template = _template()

    template.has_output("*", {
        "Value": {"Fn::Join": [",", assertions.Match.any_value()]},
        "Export": {"Name": "ManagedMicrosoftADDNSIPAddresses"}
    })
    template.has_output("*", {
        "Export": {"Name": "ManagedMicrosoftADDNSID"}
    })


def test_ec2_role_has_ssm_policies():
    template = _template()
    managed_policies = assertions.Capture()

    template.has_resource_properties("AWS::IAM::Role", {
        "AssumeRolePolicyDocument": {
            "Statement": [assertions.Match.object_like({
                "Principal": {"Service": "ec2.amazonaws.com"}
            })]
        },
        "ManagedPolicyArns": managed_policies
    })

    serialized = json.dumps(managed_policies.as_array())
    assert "AmazonSSMManagedInstanceCore" in serialized
    assert "AmazonSSMDirectoryServiceAccess" in serialized
