import logging

from aws_cdk import (
    Stack,
    aws_ec2 as ec2,
    aws_fsx as fsx,
    aws_s3 as s3,
    aws_secretsmanager as secretsmanager,
    CfnOutput,
    CfnTag,
    Fn,
    RemovalPolicy,
)
from constructs import Construct

from managed_ad_fsx.managed_msad_stack import (
    DIRECTORY_ID_EXPORT_NAME,
    DNS_IP_ADDRESSES_EXPORT_NAME,
)
from managed_ad_fsx.secret_references import generated_credential, secret_json_reference

logger = logging.getLogger(__name__)

# FSx for ONTAP が使用するポート (from_port, to_port, 説明)
# Ref: https://docs.aws.amazon.com/fsx/latest/ONTAPGuide/limit-access-security-groups.html
ONTAP_TCP_PORTS = [
    (22, 22, "SSH access to the IP address of the cluster management LIF or a node management LIF"),
    (111, 111, "Remote procedure call for NFS"),
    (135, 135, "Remote procedure call for CIFS"),
    (139, 139, "NetBIOS service session for CIFS"),
    (161, 162, "Simple network management protocol (SNMP)"),
    (443, 443, "ONTAP REST API access to the IP address of the cluster management LIF or an SVM management LIF"),
    (445, 445, "Microsoft SMB/CIFS over TCP with NetBIOS framing"),
    (635, 635, "NFS mount"),
    (749, 749, "Kerberos"),
    (2049, 2049, "NFS server daemon"),
    (3260, 3260, "iSCSI access through the iSCSI data LIF"),
    (4045, 4045, "NFS lock daemon"),
    (4046, 4046, "Network status monitor for NFS"),
    (10000, 10000, "Network data management protocol (NDMP) and NetApp SnapMirror intercluster communication"),
    (11104, 11104, "Management of NetApp SnapMirror intercluster communication"),
    (11105, 11105, "SnapMirror data transfer using intercluster LIFs"),
]

ONTAP_UDP_PORTS = [
    (111, 111, "Remote procedure call for NFS"),
    (135, 135, "Remote procedure call for CIFS"),
    (137, 137, "NetBIOS name resolution for CIFS"),
    (139, 139, "NetBIOS service session for CIFS"),
    (161, 162, "Simple network management protocol (SNMP)"),
    (635, 635, "NFS mount"),
    (2049, 2049, "NFS server daemon"),
    (4045, 4045, "NFS lock daemon"),
    (4046, 4046, "Network status monitor for NFS"),
    (4049, 4049, "NFS quota protocol"),
]

FILE_SYSTEM_ADMINISTRATORS_GROUP = "FSxAdminGroup"


def domain_name_from_distinguished_name(distinguished_name: str) -> str:
    """DNのDC要素からドメイン名を組み立てる（例: OU=x,DC=corp,DC=example,DC=com -> corp.example.com）"""
    components = []
    for rdn in distinguished_name.split(","):
        key, _, value = rdn.strip().partition("=")
        if key.strip().upper() == "DC":
            components.append(value.strip())
    return ".".join(components)


class FsxStack(Stack):
    """
    FSx Stack: FSx for ONTAP / FSx for Windows File Server と DataSync 用 S3 バケット

    このスタックには以下が含まれます:
    - FSx for ONTAP 用セキュリティグループ（プロトコル毎のインバウンドルール）
    - FSx for ONTAP ファイルシステム、SVM（Managed AD 参加）、SMB ボリューム
    - FSx for Windows File Server（Managed AD 参加）
    - DataSync 用 S3 バケット

    VPC と AD のシークレットは Managed MSAD Stack から受け取り、
    AD の DNS IP アドレスとディレクトリ ID はエクスポート値から参照する。
    """

    def __init__(self, scope: Construct, construct_id: str,
                 domain_name: str,
                 organizational_unit_distinguished_name: str,
                 vpc: ec2.IVpc,
                 managed_msad_secret: secretsmanager.ISecret,
                 **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # OUのDC部分とドメイン名の不一致は SVM 作成時まで検出されないため、synth時に確認
        ou_domain_name = domain_name_from_distinguished_name(organizational_unit_distinguished_name)
        if ou_domain_name.lower() != domain_name.lower():
            raise ValueError(
                f"Organizational unit '{organizational_unit_distinguished_name}' "
                f"is not in domain '{domain_name}'"
            )

        isolated_subnet_ids = vpc.select_subnets(
            subnet_type=ec2.SubnetType.PRIVATE_ISOLATED
        ).subnet_ids

        # FSx for ONTAP 用セキュリティグループ
        self.file_system_security_group = ec2.SecurityGroup(
            self, "FileSystemSecurityGroup",
            vpc=vpc,
            description="Security group for FSx for ONTAP file system"
        )
        self._setup_file_system_security_rules(vpc.vpc_cidr_block)

        # FSx for ONTAP の fsxadmin 認証情報
        file_system_secret = secretsmanager.Secret(
            self, "FileSystemSecret",
            secret_name="/fsx-for-ontap/file-system",
            generate_secret_string=generated_credential("fsxadmin")
        )

        # FSx for ONTAP ファイルシステム
        self.ontap_file_system = fsx.CfnFileSystem(
            self, "OntapFileSystem",
            file_system_type="ONTAP",
            subnet_ids=[isolated_subnet_ids[0]],
            security_group_ids=[self.file_system_security_group.security_group_id],
            storage_capacity=1024,
            storage_type="SSD",
            ontap_configuration=fsx.CfnFileSystem.OntapConfigurationProperty(
                deployment_type="SINGLE_AZ_1",
                automatic_backup_retention_days=7,
                daily_automatic_backup_start_time="16:00",
                disk_iops_configuration=fsx.CfnFileSystem.DiskIopsConfigurationProperty(
                    mode="AUTOMATIC"
                ),
                fsx_admin_password=secret_json_reference(file_system_secret, "password"),
                throughput_capacity=128,
                weekly_maintenance_start_time="6:17:00"
            ),
            tags=[CfnTag(key="Name", value="fsx-for-ontap-file-system")]
        )

        # SVM（Managed AD に参加）
        svm_name = "fsx-for-ontap-svm"
        self.svm = fsx.CfnStorageVirtualMachine(
            self, "Svm",
            file_system_id=self.ontap_file_system.ref,
            name=svm_name,
            active_directory_configuration=fsx.CfnStorageVirtualMachine.ActiveDirectoryConfigurationProperty(
                net_bios_name="SVM",
                self_managed_active_directory_configuration=fsx.CfnStorageVirtualMachine.SelfManagedActiveDirectoryConfigurationProperty(
                    dns_ips=Fn.split(",", Fn.import_value(DNS_IP_ADDRESSES_EXPORT_NAME)),
                    domain_name=domain_name,
                    file_system_administrators_group=FILE_SYSTEM_ADMINISTRATORS_GROUP,
                    organizational_unit_distinguished_name=organizational_unit_distinguished_name,
                    user_name=secret_json_reference(managed_msad_secret, "userName"),
                    password=secret_json_reference(managed_msad_secret, "password")
                )
            ),
            root_volume_security_style="NTFS",
            tags=[CfnTag(key="Name", value=svm_name)]
        )

        # SMB用ボリューム
        volume_name = "fsx_for_ontap_volume_smb"
        self.smb_volume = fsx.CfnVolume(
            self, "SmbVolume",
            name=volume_name,
            volume_type="ONTAP",
            ontap_configuration=fsx.CfnVolume.OntapConfigurationProperty(
                junction_path="/smb",
                size_in_megabytes="20480",
                storage_efficiency_enabled="true",
                storage_virtual_machine_id=self.svm.ref,
                security_style="NTFS",
                tiering_policy=fsx.CfnVolume.TieringPolicyProperty(
                    cooling_period=31,
                    name="AUTO"
                )
            ),
            tags=[CfnTag(key="Name", value=volume_name)]
        )

        # FSx for Windows File Server（Managed AD のディレクトリIDで参加）
        self.windows_file_system = fsx.CfnFileSystem(
            self, "WindowsFileSystem",
            file_system_type="WINDOWS",
            subnet_ids=[isolated_subnet_ids[0]],
            security_group_ids=[self.file_system_security_group.security_group_id],
            storage_capacity=32,
            storage_type="SSD",
            windows_configuration=fsx.CfnFileSystem.WindowsConfigurationProperty(
                active_directory_id=Fn.import_value(DIRECTORY_ID_EXPORT_NAME),
                deployment_type="SINGLE_AZ_2",
                automatic_backup_retention_days=7,
                daily_automatic_backup_start_time="16:00",
                throughput_capacity=128,
                weekly_maintenance_start_time="6:17:00"
            ),
            tags=[CfnTag(key="Name", value="fsx-for-windows-file-server")]
        )

        # DataSync 用 S3 バケット
        self.datasync_bucket = s3.Bucket(
            self, "DataSyncBucket",
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            encryption=s3.BucketEncryption.S3_MANAGED,
            enforce_ssl=True,
            versioned=True,
            removal_policy=RemovalPolicy.DESTROY
        )

        # 出力値
        CfnOutput(
            self, "OntapFileSystemId",
            value=self.ontap_file_system.ref,
            description="FSx for ONTAP File System ID"
        )

        CfnOutput(
            self, "SvmId",
            value=self.svm.ref,
            description="FSx for ONTAP Storage Virtual Machine ID"
        )

        CfnOutput(
            self, "SmbVolumeId",
            value=self.smb_volume.ref,
            description="FSx for ONTAP SMB Volume ID"
        )

        CfnOutput(
            self, "WindowsFileSystemId",
            value=self.windows_file_system.ref,
            description="FSx for Windows File Server File System ID"
        )

        CfnOutput(
            self, "DataSyncBucketName",
            value=self.datasync_bucket.bucket_name,
            description="S3 Bucket name for DataSync"
        )

    def _setup_file_system_security_rules(self, vpc_cidr_block):
        """FSx for ONTAP のインバウンドルールを設定（送信元はVPC CIDR）"""
        peer = ec2.Peer.ipv4(vpc_cidr_block)

        self.file_system_security_group.add_ingress_rule(
            peer=peer,
            connection=ec2.Port.icmp_ping(),
            description="Pinging the instance"
        )

        for from_port, to_port, desc in ONTAP_TCP_PORTS:
            if from_port == to_port:
                connection = ec2.Port.tcp(from_port)
            else:
                connection = ec2.Port.tcp_range(from_port, to_port)
            self.file_system_security_group.add_ingress_rule(
                peer=peer, connection=connection, description=desc
            )

        for from_port, to_port, desc in ONTAP_UDP_PORTS:
            if from_port == to_port:
                connection = ec2.Port.udp(from_port)
            else:
                connection = ec2.Port.udp_range(from_port, to_port)
            self.file_system_security_group.add_ingress_rule(
                peer=peer, connection=connection, description=desc
            )

        logger.debug(
            "Added %d ingress rules to the FSx for ONTAP security group",
            1 + len(ONTAP_TCP_PORTS) + len(ONTAP_UDP_PORTS)
        )
