"""Menu photo translator: vision-model menu extraction with KRW price conversion."""
