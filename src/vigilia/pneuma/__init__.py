"""
Pneuma - JSON-RPC layer for vigilia.

Message envelope (requests, replies, correlation ids), the HTTP transport,
and the Eth / Net method tables built on them.

Uses httpx for HTTP, eth-hash for topic hashing and eth-abi for log data.
"""
