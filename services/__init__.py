"""
Services

Pure computation and external collaborators, no session state changes:
- PayoutService: fee and proportional split
- OracleService: outcome selection
- TransferService: paying recipients
- NotificationService: lifecycle observers
- HistoryService: per-bettor history
"""
