from aws_cdk import (
    CfnDynamicReference,
    CfnDynamicReferenceService,
    aws_secretsmanager as secretsmanager,
)


def generated_credential(user_name: str) -> secretsmanager.SecretStringGenerator:
    """{"userName": ..., "password": ...} 形式のシークレットを生成する設定"""
    return secretsmanager.SecretStringGenerator(
        generate_string_key="password",
        password_length=32,
        exclude_characters="\\",
        require_each_included_type=True,
        secret_string_template=f'{{"userName": "{user_name}"}}'
    )


def secret_json_reference(secret: secretsmanager.ISecret, json_key: str) -> str:
    """
    シークレットのJSONキーを {{resolve:secretsmanager:...}} 動的参照として返す

    値はデプロイ時に CloudFormation が解決するため、テンプレートには平文で出力されない。
    別スタックのシークレットを渡した場合、ARN はクロススタック参照になる。
    """
    return CfnDynamicReference(
        CfnDynamicReferenceService.SECRETS_MANAGER,
        f"{secret.secret_arn}:SecretString:{json_key}"
    ).to_string()
