#!/usr/bin/env python3
"""
Example querying heights, blocks and balances through the Node RPC service.
"""
import os
import logging

from adenine_sdk import NodeRpc, Chain, NodeRpcError

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main():
    """
    Query each chain for its current height and block.

    Configuration comes from the environment:
    ADENINE_HOST, ADENINE_PORT, ADENINE_PRODUCTION, ADENINE_API_KEY,
    ADENINE_DID, ADENINE_NETWORK and ADENINE_ETH_ADDRESS.
    """
    host = os.environ.get("ADENINE_HOST", "localhost")
    port = int(os.environ.get("ADENINE_PORT", "8001"))
    production = os.environ.get("ADENINE_PRODUCTION") == "1"
    api_key = os.environ.get("ADENINE_API_KEY")
    did = os.environ.get("ADENINE_DID", "")
    network = os.environ.get("ADENINE_NETWORK", "mainnet")
    eth_address = os.environ.get("ADENINE_ETH_ADDRESS")

    if not api_key:
        logger.error("ADENINE_API_KEY is required")
        return 1

    try:
        node = NodeRpc(host, port, production=production, connect_timeout=10)
    except NodeRpcError as e:
        logger.error(f"Could not connect to {host}:{port}: {e}")
        return 1

    with node:
        for chain in Chain:
            try:
                height = node.get_current_height(api_key, did, network, chain)
                logger.info(f"{chain.value}: current height {height}")
                block = node.get_current_block_info(api_key, did, network, chain)
                if block is not None:
                    logger.info(f"{chain.value}: block keys {sorted(block)}")
            except NodeRpcError as e:
                logger.error(f"{chain.value}: {type(e).__name__}: {e}")

        if eth_address:
            balance = node.get_current_balance(api_key, did, network, Chain.ETH, eth_address)
            logger.info(f"eth balance of {eth_address}: {balance} wei")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
