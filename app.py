#!/usr/bin/env python3
import logging
import os

import aws_cdk as cdk
from rich.console import Console
from rich.logging import RichHandler

from managed_ad_fsx.managed_ad_fsx_app import (
    DEFAULT_DOMAIN_NAME,
    DEFAULT_ORGANIZATIONAL_UNIT_DISTINGUISHED_NAME,
    add_managed_ad_fsx_stacks,
    resolve_log_level,
)

app = cdk.App()

# CDKコンテキストからパラメータを取得（cdk.jsonで一元管理）
domain_name = app.node.try_get_context("domain-name") or DEFAULT_DOMAIN_NAME
organizational_unit_distinguished_name = (
    app.node.try_get_context("organizational-unit-distinguished-name")
    or DEFAULT_ORGANIZATIONAL_UNIT_DISTINGUISHED_NAME
)
stack_suffix = app.node.try_get_context("stack-suffix")
log_level = resolve_log_level(app.node.try_get_context("log-level"))

# synth結果を標準出力に出すため、ログは標準エラー出力へ
logging.basicConfig(
    level=log_level,
    format="%(message)s",
    handlers=[RichHandler(console=Console(stderr=True), show_path=False)]
)

add_managed_ad_fsx_stacks(
    app,
    domain_name=domain_name,
    organizational_unit_distinguished_name=organizational_unit_distinguished_name,
    stack_suffix=stack_suffix,
    env=cdk.Environment(
        account=os.getenv('CDK_DEFAULT_ACCOUNT'),
        region=os.getenv('CDK_DEFAULT_REGION')
    )
)

app.synth()
