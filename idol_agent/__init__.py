"""Off-chain scoring agent for the Monad Idol project registry."""
