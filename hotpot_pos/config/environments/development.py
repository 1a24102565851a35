from ..settings import Settings

class DevelopmentSettings(Settings):
    debug: bool = True
    database_url: str = "duckdb://./data/hotpot_pos_dev.duckdb"
    staff_passphrase: str = "dev-kitchen"
