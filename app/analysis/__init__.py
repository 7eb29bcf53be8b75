"""Citation & visibility analysis engine.

Pure, synchronous steps over a run's collected responses:
  1. Citation Extractor (raw provider JSON → Citation)
  2. Company Mention Detector
  3. Citation Aggregator
  4. Brand vs Competitor Citation Metrics
  5. Visibility Scoring

Input:  ProviderCompletion (from the gateway)
Output: CitationAnalysis + metrics for the brand monitor API
"""
