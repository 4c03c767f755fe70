"""Analysis - Matching, canonical contexts, probing, stabilization and scoring."""
