# Manager package - product service orchestration
