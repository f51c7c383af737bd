"""Authorization primitives for privileged staking operations."""
