"""Host-process side: coordination, leader election, summaries, stats, licensing."""
