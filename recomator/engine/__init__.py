"""
Recommendation lifecycle engine.

Modules
-------
store    : RecommendationStore — ordered list + name index over the same records.
polling  : LongPollJob, shared submit/long-poll/report protocol.
fetcher  : FetchOrchestrator — submit project selection, long-poll, ingest, rank.
applier  : ApplyOrchestrator — validate a selection, claim, send apply requests.
watcher  : CentralStatusWatcher — the single loop reconciling claimed records.
ranker   : similarity() + SimilarityRanker — persisted applied/seen counters.
projects : ProjectsService — project list and persisted selection.
requirements : RequirementsChecker, per-project permission and API checks.
"""
