"""
Context Renderers.

Turns persisted context records into the short markdown summaries the hosting
agent reads as working memory.
"""
import logging
from typing import Any, Callable, Dict, List

from ..opportunities.models import Opportunity
from .contexts import (
    BlockchainMemory,
    ContextMemory,
    CrossChainMemory,
    DefiMemory,
    NftMemory,
    WalletMemory,
)

logger = logging.getLogger(__name__)

PREVIEW_SIZE = 3


def render_blockchain(memory: BlockchainMemory) -> str:
    blocks = "\n".join(
        f"  - Block #{block.get('number')}: {str(block.get('hash', ''))[:10]}..."
        for block in memory.recent_blocks[:PREVIEW_SIZE]
    )

    text = f"""# Blockchain: {memory.network}
- Status: {memory.status}
- Current Block: {memory.block_number}
- Gas Price: {memory.gas_price_gwei} gwei
- Last Updated: {memory.last_updated}

## Recent Blocks
{blocks or '  - No recent blocks'}
"""

    if memory.monitoring:
        window = memory.monitoring
        text += f"""
## Monitoring
- Events: {', '.join(window.get('event_types', []))}
- Window: {window.get('start_time')} to {window.get('end_time')}
- Observed: {len(window.get('events', []))} events
"""
    return text.strip()


def render_wallet(memory: WalletMemory) -> str:
    tokens = "\n".join(f"  - {symbol}: {amount}" for symbol, amount in sorted(memory.token_balances.items()))
    token_section = f"- Tokens:\n{tokens}" if tokens else "- No token balances"
    native = "Unknown" if memory.native_balance is None else f"{memory.native_balance} {memory.native_symbol}"

    return f"""# Wallet: {memory.address} on {memory.network}
## Balances
- Native: {native}
{token_section}

Last Updated: {memory.last_updated}
""".strip()


def render_defi(memory: DefiMemory) -> str:
    pools = "\n".join(
        f"  - {pool.name}: ${pool.tvl_usd:,.0f} TVL, {pool.apy:.2f}% APY"
        for pool in memory.pools[:PREVIEW_SIZE]
    )
    metrics = memory.metrics

    return f"""# DeFi Protocol: {memory.protocol} on {memory.network}
## Pools
{pools or '- No pools available'}

## Protocol Metrics
- TVL: ${metrics.get('tvl_usd', 'Unknown')}
- Pools: {metrics.get('pool_count', 'Unknown')}
- Average APY: {metrics.get('average_apy', 'Unknown')}%

Last Updated: {memory.last_updated}
""".strip()


def render_nft(memory: NftMemory) -> str:
    symbol = f" [{memory.symbol}]" if memory.symbol else ""
    supply = "Unknown" if memory.token_count is None else f"{memory.token_count} tokens"

    return f"""# NFT Collection: {memory.name}{symbol} ({memory.collection[:8]}...)
- Network: {memory.network}
- Total Supply: {supply}

Last Updated: {memory.last_updated}
""".strip()


def format_opportunity_line(payload: Dict[str, Any]) -> str:
    """One-line summary of a persisted opportunity payload."""
    opportunity = Opportunity.model_validate(payload)
    route = " → ".join(opportunity.networks)
    return f"{opportunity.kind.value} on {route}: {opportunity.description} ({opportunity.formatted_return()})"


def render_cross_chain(memory: CrossChainMemory) -> str:
    chains = "\n".join(
        f"  - {chain}: {memory.chain_data.get(chain, {}).get('status', 'Not connected')} "
        f"(Block: {memory.chain_data.get(chain, {}).get('blockNumber', 'Unknown')})"
        for chain in memory.chains
    )
    opportunities = "\n".join(
        f"  - {format_opportunity_line(payload)}" for payload in memory.opportunities[:PREVIEW_SIZE]
    )

    text = f"""# Cross-Chain Analysis
- ID: {memory.id}
- Created: {memory.created_at}
- Updated: {memory.updated_at}

## Chain Status
{chains}

## Opportunities Detected
{opportunities or '  - No opportunities detected yet'}
"""

    if memory.analysis.get("summary"):
        text += f"\n## Analysis Summary\n{memory.analysis['summary']}\n"

    if memory.last_plan_execution:
        execution = memory.last_plan_execution
        text += f"""
## Last Plan Execution
- Plan: {execution.get('planId')}
- Mode: {execution.get('mode')}
- Status: {execution.get('status')}
"""
    return text.strip()


RENDERERS: Dict[type, Callable[[Any], str]] = {
    BlockchainMemory: render_blockchain,
    WalletMemory: render_wallet,
    DefiMemory: render_defi,
    NftMemory: render_nft,
    CrossChainMemory: render_cross_chain,
}


def render(memory: ContextMemory) -> str:
    """Render any context record to markdown."""
    renderer = RENDERERS.get(type(memory))
    if renderer is None:
        raise TypeError(f"No renderer for {type(memory).__name__}")
    return renderer(memory)


def summarize_opportunities(opportunities: List[Opportunity], chain_count: int, min_profit_percent) -> str:
    """Analysis summary stored on cross-chain memory."""
    if not opportunities:
        return f"No opportunities meeting the minimum {min_profit_percent}% profit threshold were found."

    best = opportunities[0]
    return (
        f"Found {len(opportunities)} opportunities across {chain_count} chains. "
        f"Best opportunity: {best.description} with {best.formatted_return()} expected return."
    )
