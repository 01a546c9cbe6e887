from pydantic_settings import BaseSettings
from dotenv import load_dotenv


load_dotenv()


class Settings(BaseSettings):
    app_name: str = "Carbon Provenance API"
    debug: bool = False
    database_url: str = ""
    host: str = "127.0.0.1"
    port: int = 8000
    secret_key: str = ""
    access_token_expire_minutes: int = 60
    sign_in_nonce_ttl_minutes: int = 10
    allowed_hosts: str = ""

    # Ledger
    rpc_url: str = "https://api.avax-test.network/ext/bc/C/rpc"
    chain_id: int = 43113
    contract_address: str = ""
    ledger_private_key: str = ""
    ledger_from_block: int = 0
    mint_gas_limit: int = 500_000
    transfer_gas_limit: int = 300_000
    use_gas_estimation: bool = False
    gas_estimate_padding: float = 1.2
    confirmation_timeout_seconds: float = 120.0
    confirmation_poll_seconds: float = 2.0
    metadata_base_url: str = "https://api.carbontrack.com"

    # Provenance / partners
    tree_max_depth: int = 8
    tree_depth_ceiling: int = 32
    tree_max_nodes: int = 500
    partner_search_limit: int = 10
    partner_search_ceiling: int = 50

    log_level: str = "INFO"
    log_file: str = "logs/application.log"


settings = Settings()

if not settings.secret_key:
    raise RuntimeError("Secret key not configured.")
