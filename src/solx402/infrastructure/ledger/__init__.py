from .solana_rpc_client import SolanaRpcClient, create_ledger_client

__all__ = ["SolanaRpcClient", "create_ledger_client"]
