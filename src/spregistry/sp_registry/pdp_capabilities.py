from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from eth_abi import encode as abi_encode
from eth_abi.exceptions import EncodingError as ABIEncodingError

from spregistry.core.constants import ZERO_ADDRESS
from spregistry.core.errors import EncodingError
from .capabilities import (
    CapabilityField,
    CapabilitySchema,
    decode_address,
    decode_bool,
    decode_peer_id,
    decode_text,
    decode_uint,
    encode_address,
    encode_bool,
    encode_peer_id,
    encode_text,
    encode_uint,
)
from .types import PDPOffering, ProviderWithProduct

CAP_SERVICE_URL = "serviceURL"
CAP_MIN_PIECE_SIZE = "minPieceSizeInBytes"
CAP_MAX_PIECE_SIZE = "maxPieceSizeInBytes"
CAP_STORAGE_PRICE = "storagePricePerTibPerDay"
CAP_MIN_PROVING_PERIOD = "minProvingPeriodInEpochs"
CAP_LOCATION = "location"
CAP_PAYMENT_TOKEN = "paymentTokenAddress"
CAP_IPNI_PIECE = "ipniPiece"
CAP_IPNI_IPFS = "ipniIpfs"
CAP_IPNI_PEER_ID = "ipniPeerId"
CAP_IPNI_PEER_ID_LEGACY = "IPNIPeerID"

PDP_OFFERING_ABI_TYPE = "(string,uint256,uint256,bool,bool,uint256,uint256,string,address)"

PDP_SCHEMA: CapabilitySchema[PDPOffering] = CapabilitySchema(
    "PDPCapabilities",
    PDPOffering,
    [
        CapabilityField(CAP_SERVICE_URL, "service_url", encode_text, decode_text, default="", required=True),
        CapabilityField(CAP_MIN_PIECE_SIZE, "min_piece_size_in_bytes", encode_uint, decode_uint, default=0, required=True),
        CapabilityField(CAP_MAX_PIECE_SIZE, "max_piece_size_in_bytes", encode_uint, decode_uint, default=0, required=True),
        CapabilityField(CAP_IPNI_PIECE, "ipni_piece", encode_bool, decode_bool, default=False),
        CapabilityField(CAP_IPNI_IPFS, "ipni_ipfs", encode_bool, decode_bool, default=False),
        CapabilityField(CAP_STORAGE_PRICE, "storage_price_per_tib_per_day", encode_uint, decode_uint, default=0, required=True),
        CapabilityField(
            CAP_MIN_PROVING_PERIOD, "min_proving_period_in_epochs", encode_uint, decode_uint, default=0, required=True
        ),
        CapabilityField(CAP_LOCATION, "location", encode_text, decode_text, default=""),
        CapabilityField(CAP_PAYMENT_TOKEN, "payment_token_address", encode_address, decode_address, default=ZERO_ADDRESS),
        CapabilityField(
            CAP_IPNI_PEER_ID,
            "ipni_peer_id",
            encode_peer_id,
            decode_peer_id,
            default=None,
            aliases=(CAP_IPNI_PEER_ID_LEGACY,),
        ),
    ],
)


def encode_pdp_capabilities(
    pdp_offering: PDPOffering, capabilities: Optional[Mapping[str, Optional[str]]] = None
) -> Tuple[List[str], List[str]]:
    return PDP_SCHEMA.encode(pdp_offering, capabilities)


def decode_pdp_capabilities(keys: Sequence[str], values: Sequence[str | bytes]) -> Tuple[PDPOffering, Dict[str, str]]:
    return PDP_SCHEMA.decode(keys, values)


def decode_pdp_capability_map(capabilities: Mapping[str, str]) -> PDPOffering:
    return PDP_SCHEMA.decode_map(capabilities)


def decode_pdp_offering(provider: ProviderWithProduct) -> Tuple[PDPOffering, Dict[str, str]]:
    return decode_pdp_capabilities(provider.product.capability_keys, provider.product_capability_values)


def encode_pdp_offering(pdp_offering: PDPOffering) -> bytes:
    """ABI-encode the offering struct passed as ``productData`` on registration."""
    # Validates every field and normalises the payment token address.
    keys, values = encode_pdp_capabilities(pdp_offering)
    fields = dict(zip(keys, values))
    payment_token = fields[CAP_PAYMENT_TOKEN] or ZERO_ADDRESS
    try:
        return abi_encode(
            [PDP_OFFERING_ABI_TYPE],
            [
                (
                    pdp_offering.service_url,
                    pdp_offering.min_piece_size_in_bytes,
                    pdp_offering.max_piece_size_in_bytes,
                    pdp_offering.ipni_piece,
                    pdp_offering.ipni_ipfs,
                    pdp_offering.storage_price_per_tib_per_day,
                    pdp_offering.min_proving_period_in_epochs,
                    pdp_offering.location or "",
                    payment_token,
                )
            ],
        )
    except ABIEncodingError as exc:
        raise EncodingError(
            component="PDPCapabilities",
            operation="encode_pdp_offering",
            message=f"cannot ABI-encode offering: {exc}",
            cause=exc,
        ) from exc
