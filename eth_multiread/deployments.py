"""Where Multicall3 lives on each chain and since when.

The multicall contract cannot answer queries for blocks preceding
the block when it was deployed on a chain. We can thus only use multicall
for recent enough blocks, and fall back to individual calls otherwise.

See https://www.multicall3.com/deployments
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Final, Mapping

from eth_typing import BlockNumber, HexAddress


logger = logging.getLogger(__name__)

#: Default Multicall3 address, same on most EVM chains
MULTICALL_DEPLOY_ADDRESS: Final[str] = "0xca11bde05977b3631167028862be2a173976ca11"


@dataclass(frozen=True, slots=True)
class MulticallDeployment:
    """Multicall3 deployment on one chain."""

    #: Block number when the contract was created
    deployment_block: BlockNumber

    #: Set if the contract is not at the default address
    address_override: HexAddress | str | None = None

    @property
    def address(self) -> HexAddress | str:
        return self.address_override or MULTICALL_DEPLOY_ADDRESS


#: Chain name -> Multicall3 deployment
DEFAULT_MULTICALL_DEPLOYMENTS: Final[Mapping[str, MulticallDeployment]] = MappingProxyType(
    {
        "ethereum": MulticallDeployment(14353601),
        "arbitrum": MulticallDeployment(7654707),
        "arbitrum_nova": MulticallDeployment(1746963),
        "optimism": MulticallDeployment(4286263),
        "polygon": MulticallDeployment(25770160),
        "polygon_zkevm": MulticallDeployment(57746),
        "fantom": MulticallDeployment(33001987),
        "bsc": MulticallDeployment(15921452),
        "moonriver": MulticallDeployment(609002),
        "moonbeam": MulticallDeployment(609002),
        "avax": MulticallDeployment(11907934),
        "harmony": MulticallDeployment(24185753),
        "cronos": MulticallDeployment(1963112),
        "klaytn": MulticallDeployment(96002415),
        "godwoken_v1": MulticallDeployment(15034),
        "celo": MulticallDeployment(13112599),
        "oasis": MulticallDeployment(1481392),
        "rsk": MulticallDeployment(4249540),
        "metis": MulticallDeployment(2338552),
        "heco": MulticallDeployment(14413501),
        "okexchain": MulticallDeployment(10364792),
        "astar": MulticallDeployment(761794),
        "aurora": MulticallDeployment(62907816),
        "boba": MulticallDeployment(446859),
        "songbird": MulticallDeployment(13382504),
        "fuse": MulticallDeployment(16146628),
        "flare": MulticallDeployment(3002461),
        "milkomeda": MulticallDeployment(4377424),
        "velas": MulticallDeployment(55883577),
        "step": MulticallDeployment(5734583),
        "canto": MulticallDeployment(2905789),
        "iotex": MulticallDeployment(22163670),
        "bitgert": MulticallDeployment(2118034),
        "kava": MulticallDeployment(3661165),
        "dfk": MulticallDeployment(14790551),
        "pulse": MulticallDeployment(14353601),
        "onus": MulticallDeployment(805931, "0x748c384f759cc596f0d9fa96dcabe8a11e443b30"),
        "rollux": MulticallDeployment(119222),
        "xdai": MulticallDeployment(21022491),
        "evmos": MulticallDeployment(188483),
        "thundercore": MulticallDeployment(100671921),
        "kcc": MulticallDeployment(11760430),
        "linea": MulticallDeployment(42),
        "zora": MulticallDeployment(5882),
        "eos_evm": MulticallDeployment(7943933),
        "tron": MulticallDeployment(51067989, "TEazPvZwDjDtFeJupyo7QunvnrnUjPH8ED"),
        "era": MulticallDeployment(3908235, "0xF9cda624FBC7e059355ce98a31693d299FACd963"),  # zkSync
        "mantle": MulticallDeployment(3962, "0x05f3105fc9FC531712b2570f1C6E11dD4bCf7B3c"),
        "neon_evm": MulticallDeployment(205939275, "0x2f6eee8ee450a959e640b6fb4dd522b5d5dcd20f"),
        "base": MulticallDeployment(5022),
        "darwinia": MulticallDeployment(251739),
    }
)


class MulticallRegistry:
    """Look up Multicall3 deployments.

    - Immutable after construction
    - Pass your own table for custom chains or test networks
    """

    def __init__(self, deployments: Mapping[str, MulticallDeployment] = DEFAULT_MULTICALL_DEPLOYMENTS):
        assert all(isinstance(d, MulticallDeployment) for d in deployments.values()), f"Got {deployments}"
        self.deployments = MappingProxyType(dict(deployments))

    def __repr__(self):
        return f"<MulticallRegistry {len(self.deployments)} chains>"

    def __contains__(self, chain: str) -> bool:
        return chain in self.deployments

    def get(self, chain: str) -> MulticallDeployment | None:
        return self.deployments.get(chain)

    def is_supported(self, chain: str, block: BlockNumber | str | None = "latest") -> bool:
        """Can we use Multicall3 for a query.

        - Unknown chains are not supported
        - The latest block is always supported
        - Historical blocks are supported only after the deployment block
        """
        deployment = self.deployments.get(chain)
        if deployment is None:
            return False

        if block is None or isinstance(block, str):
            return True

        return block > deployment.deployment_block

    def get_address(self, chain: str) -> HexAddress | str:
        """Get the Multicall3 address for a chain.

        :raise KeyError:
            Unknown chain
        """
        return self.deployments[chain].address
