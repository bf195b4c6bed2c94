"""Remote access, mutation strategies, the batch engine and transfer orchestration."""
