import logging
import re

from aws_cdk import Environment
from constructs import Construct

from managed_ad_fsx.fsx_stack import FsxStack
from managed_ad_fsx.managed_msad_stack import ManagedMsadStack

logger = logging.getLogger(__name__)

DEFAULT_DOMAIN_NAME = "corp.non-97.net"
DEFAULT_ORGANIZATIONAL_UNIT_DISTINGUISHED_NAME = "OU=FSxForONTAP,OU=corp,DC=corp,DC=non-97,DC=net"
DEFAULT_LOG_LEVEL = "INFO"


def resolve_log_level(value: str = None) -> str:
    """コンテキストのログレベル名を正規化（大文字小文字を無視、不明な値は INFO）"""
    level_name = str(value or DEFAULT_LOG_LEVEL).strip().upper()
    if not isinstance(logging.getLevelName(level_name), int):
        return DEFAULT_LOG_LEVEL
    return level_name


def add_managed_ad_fsx_stacks(scope: Construct,
                              domain_name: str = DEFAULT_DOMAIN_NAME,
                              organizational_unit_distinguished_name: str = DEFAULT_ORGANIZATIONAL_UNIT_DISTINGUISHED_NAME,
                              env: Environment = None,
                              stack_suffix: str = None):
    """
    Managed MSAD Stack と FSx Stack を作成し、依存関係を設定する

    FSx Stack は VPC とシークレットを直接受け取るが、DNS IP アドレスと
    ディレクトリ ID は Fn.import_value で参照するため、依存関係を明示的に追加する。
    """
    # スタック名は英数字とハイフンのみ許可されるため、それ以外の文字をハイフンに置換
    suffix = f"-{re.sub(r'[^A-Za-z0-9-]', '-', stack_suffix)}" if stack_suffix else ""

    managed_msad_stack = ManagedMsadStack(
        scope, f"ManagedMSADStack{suffix}",
        domain_name=domain_name,
        description="VPC and AWS Managed Microsoft AD stack",
        env=env
    )

    fsx_stack = FsxStack(
        scope, f"FSxStack{suffix}",
        domain_name=domain_name,
        organizational_unit_distinguished_name=organizational_unit_distinguished_name,
        vpc=managed_msad_stack.vpc,
        managed_msad_secret=managed_msad_stack.managed_msad_secret,
        description="FSx for ONTAP, FSx for Windows File Server and DataSync bucket stack",
        env=env
    )
    fsx_stack.add_dependency(managed_msad_stack)

    logger.info(
        "Declared %s -> %s for domain %s (OU: %s)",
        managed_msad_stack.stack_name, fsx_stack.stack_name,
        domain_name, organizational_unit_distinguished_name
    )

    return managed_msad_stack, fsx_stack
