from aws_cdk import (
    Stack,
    aws_ec2 as ec2,
    aws_iam as iam,
    aws_secretsmanager as secretsmanager,
    aws_directoryservice as directoryservice,
    CfnOutput,
    Fn,
)
from constructs import Construct

from managed_ad_fsx.secret_references import generated_credential, secret_json_reference

# FSx Stackから Fn.import_value で参照するエクスポート名
DNS_IP_ADDRESSES_EXPORT_NAME = "ManagedMicrosoftADDNSIPAddresses"
DIRECTORY_ID_EXPORT_NAME = "ManagedMicrosoftADDNSID"


class ManagedMsadStack(Stack):
    """
    Managed MSAD Stack: VPC と AWS Managed Microsoft AD

    このスタックには以下が含まれます:
    - VPC（Public / Isolated サブネット、S3 ゲートウェイエンドポイント）
    - Managed Microsoft AD と Admin パスワードのシークレット
    - AD の DNS を参照する DHCP オプションセット
    - ドメイン参加用 EC2 インスタンス（SSM Association で参加）
    - FSx Stack 向けのエクスポート（DNS IP アドレス、ディレクトリ ID）
    """

    def __init__(self, scope: Construct, construct_id: str,
                 domain_name: str,
                 **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # EC2インスタンス用IAMロール
        ec2_role = iam.Role(
            self, "Ec2InstanceRole",
            assumed_by=iam.ServicePrincipal("ec2.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name("AmazonSSMManagedInstanceCore"),
                iam.ManagedPolicy.from_aws_managed_policy_name("AmazonSSMDirectoryServiceAccess"),
            ],
            description="IAM role for the domain join instance"
        )

        # VPCの作成（NAT Gatewayなし、AD/FSxはIsolatedサブネットに配置）
        self.vpc = ec2.Vpc(
            self, "Vpc",
            ip_addresses=ec2.IpAddresses.cidr("10.0.1.0/24"),
            enable_dns_hostnames=True,
            enable_dns_support=True,
            nat_gateways=0,
            max_azs=2,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    subnet_type=ec2.SubnetType.PUBLIC,
                    name="Public",
                    cidr_mask=26
                ),
                ec2.SubnetConfiguration(
                    subnet_type=ec2.SubnetType.PRIVATE_ISOLATED,
                    name="Isolated",
                    cidr_mask=26
                )
            ],
            gateway_endpoints={
                "S3": ec2.GatewayVpcEndpointOptions(
                    service=ec2.GatewayVpcEndpointAwsService.S3
                )
            }
        )

        # Managed Microsoft AD の Admin 認証情報
        self.managed_msad_secret = secretsmanager.Secret(
            self, "ManagedMsadSecret",
            secret_name=f"/managedMSAD/{domain_name}/Admin",
            generate_secret_string=generated_credential("Admin")
        )

        # Managed Microsoft AD（パスワードは動的参照で解決）
        self.managed_msad = directoryservice.CfnMicrosoftAD(
            self, "ManagedMicrosoftAd",
            name=domain_name,
            password=secret_json_reference(self.managed_msad_secret, "password"),
            vpc_settings=directoryservice.CfnMicrosoftAD.VpcSettingsProperty(
                subnet_ids=self.vpc.select_subnets(
                    subnet_type=ec2.SubnetType.PRIVATE_ISOLATED
                ).subnet_ids,
                vpc_id=self.vpc.vpc_id
            ),
            create_alias=False,
            edition="Standard",
            enable_sso=False
        )

        # DHCPオプションセット（ADのDNSサーバーを配布）
        dhcp_options = ec2.CfnDHCPOptions(
            self, "DhcpOptions",
            domain_name=self.managed_msad.name,
            domain_name_servers=self.managed_msad.attr_dns_ip_addresses
        )

        ec2.CfnVPCDHCPOptionsAssociation(
            self, "VpcDhcpOptionsAssociation",
            dhcp_options_id=dhcp_options.ref,
            vpc_id=self.vpc.vpc_id
        )

        # ドメイン参加用 Windows EC2 インスタンス（Publicサブネット）
        self.instance = ec2.Instance(
            self, "DomainJoinInstance",
            instance_type=ec2.InstanceType("t3.micro"),
            machine_image=ec2.MachineImage.latest_windows(
                ec2.WindowsVersion.WINDOWS_SERVER_2022_ENGLISH_FULL_BASE
            ),
            vpc=self.vpc,
            block_devices=[
                ec2.BlockDevice(
                    device_name="/dev/sda1",
                    volume=ec2.BlockDeviceVolume.ebs(
                        30, volume_type=ec2.EbsDeviceVolumeType.GP3
                    )
                )
            ],
            propagate_tags_to_volume_on_creation=True,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
            role=ec2_role
        )

        # L1 の SsmAssociations でドメイン参加ドキュメントを実行
        cfn_instance = self.instance.node.default_child
        cfn_instance.ssm_associations = [
            ec2.CfnInstance.SsmAssociationProperty(
                document_name="AWS-JoinDirectoryServiceDomain",
                association_parameters=[
                    ec2.CfnInstance.AssociationParameterProperty(
                        key="directoryId",
                        value=[self.managed_msad.ref]
                    ),
                    ec2.CfnInstance.AssociationParameterProperty(
                        key="directoryName",
                        value=[self.managed_msad.name]
                    ),
                ]
            )
        ]

        # クロススタック参照用の出力値
        CfnOutput(
            self, "ManagedMicrosoftAdDnsIpAddresses",
            value=Fn.join(",", self.managed_msad.attr_dns_ip_addresses),
            description="DNS IP addresses of the Managed Microsoft AD",
            export_name=DNS_IP_ADDRESSES_EXPORT_NAME
        )

        CfnOutput(
            self, "ManagedMicrosoftAdId",
            value=self.managed_msad.ref,
            description="Directory ID of the Managed Microsoft AD",
            export_name=DIRECTORY_ID_EXPORT_NAME
        )
