"""
Minimal contract ABIs for on-chain reads and the settlement call.
"""

# Uniswap V2 Factory ABI (only getPair is needed)
UNISWAP_V2_FACTORY_ABI = [
    {
        "constant": True,
        "inputs": [
            {"name": "", "type": "address"},
            {"name": "", "type": "address"},
        ],
        "name": "getPair",
        "outputs": [{"name": "", "type": "address"}],
        "type": "function",
    },
]

# Uniswap V2 Pair ABI (minimal)
UNISWAP_V2_PAIR_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "getReserves",
        "outputs": [
            {"name": "reserve0", "type": "uint112"},
            {"name": "reserve1", "type": "uint112"},
            {"name": "blockTimestampLast", "type": "uint32"},
        ],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "token0",
        "outputs": [{"name": "", "type": "address"}],
        "type": "function",
    },
]

# ERC20 ABI (decimals only)
ERC20_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "type": "function",
    },
]

# Flash-loan settlement contract entry point
SETTLEMENT_ABI = [
    {
        "inputs": [
            {"name": "loanToken", "type": "address"},
            {"name": "path1", "type": "address[]"},
            {"name": "path2", "type": "address[]"},
            {"name": "path3", "type": "address[]"},
            {"name": "loanAmount", "type": "uint256"},
            {"name": "minOuts", "type": "uint256[]"},
        ],
        "name": "executeArbitrage",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]
