"""
Proof oracle

The wallet treats proving as a black box: a prover turns (circuit, public
inputs) into an opaque proof and a verifier checks it against the same
public inputs. MvpProver stands in for a zkSNARK backend with Ed25519
signatures. It is NOT zero-knowledge; use it for testing only.
"""

import hashlib
import secrets
import struct
from dataclasses import dataclass, field
from typing import Optional, Sequence

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from .constants import CIRCUITS
from .errors import InputValidationError, ProofGenerationError

MVP_PROOF_SIZE = 96


def public_input_digest(circuit: str, public_inputs: Sequence[bytes]) -> bytes:
    """sha3_256(circuit || len-prefixed public inputs)"""
    message = circuit.encode() + b"\x00"
    for value in public_inputs:
        message += struct.pack("<H", len(value)) + value
    return hashlib.sha3_256(message).digest()


@dataclass
class VerifyingParameters:
    """Circuit name -> verifying key"""

    pubkeys: dict[str, Pubkey] = field(default_factory=dict)

    def to_dict(self) -> dict[str, str]:
        return {circuit: str(pubkey) for circuit, pubkey in self.pubkeys.items()}

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> "VerifyingParameters":
        try:
            return cls({circuit: Pubkey.from_string(key) for circuit, key in data.items()})
        except (AttributeError, TypeError, ValueError) as e:
            raise InputValidationError(f"Invalid verifying parameters: {e}") from None


@dataclass
class ProvingParameters:
    """Circuit name -> proving key"""

    keypairs: dict[str, Keypair] = field(default_factory=dict)

    @classmethod
    def generate(
        cls, seed: Optional[bytes] = None, circuits: Sequence[str] = CIRCUITS
    ) -> "ProvingParameters":
        """
        Create proving keys for each circuit

        Args:
            seed: Optional seed for deterministic keys; random when omitted
            circuits: Circuits to create keys for

        Returns:
            Proving parameters
        """
        if seed is None:
            seed = secrets.token_bytes(32)
        return cls(
            {
                circuit: Keypair.from_seed(
                    hashlib.sha3_256(seed + circuit.encode()).digest()
                )
                for circuit in circuits
            }
        )

    def keypair(self, circuit: str) -> Keypair:
        try:
            return self.keypairs[circuit]
        except KeyError:
            raise ProofGenerationError(
                f"No proving parameters for circuit {circuit!r}"
            ) from None

    def verifying_parameters(self) -> VerifyingParameters:
        return VerifyingParameters(
            {circuit: keypair.pubkey() for circuit, keypair in self.keypairs.items()}
        )


class Prover:
    """Proving and verifying interface"""

    def prove(
        self, circuit: str, public_inputs: Sequence[bytes], params: ProvingParameters
    ) -> bytes:
        raise NotImplementedError

    def verify(
        self,
        circuit: str,
        public_inputs: Sequence[bytes],
        proof: bytes,
        params: VerifyingParameters,
    ) -> bool:
        raise NotImplementedError


class MvpProver(Prover):
    """
    Signature-based stand-in prover

    Example:
        ```python
        params = ProvingParameters.generate()
        prover = MvpProver()
        proof = prover.prove("spend", [anchor, nullifier], params)
        assert prover.verify(
            "spend", [anchor, nullifier], proof, params.verifying_parameters()
        )
        ```
    """

    def prove(
        self, circuit: str, public_inputs: Sequence[bytes], params: ProvingParameters
    ) -> bytes:
        """
        Generate MVP proof (Ed25519 signature)

        Args:
            circuit: Circuit name
            public_inputs: Public inputs of the statement
            params: Proving parameters

        Returns:
            96-byte proof: signature (64) + pubkey (32)

        Raises:
            ProofGenerationError: If the circuit has no proving key
        """
        keypair = params.keypair(circuit)
        message_hash = public_input_digest(circuit, public_inputs)
        signature = keypair.sign_message(message_hash)
        return bytes(signature) + bytes(keypair.pubkey())

    def verify(
        self,
        circuit: str,
        public_inputs: Sequence[bytes],
        proof: bytes,
        params: VerifyingParameters,
    ) -> bool:
        """True only if the proof was made for these inputs with the circuit's key"""
        expected = params.pubkeys.get(circuit)
        if expected is None or len(proof) != MVP_PROOF_SIZE:
            return False
        if proof[64:] != bytes(expected):
            return False
        try:
            signature = Signature.from_bytes(proof[:64])
        except ValueError:
            return False
        return signature.verify(expected, public_input_digest(circuit, public_inputs))

