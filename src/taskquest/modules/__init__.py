"""
TaskQuest service modules.

- tasks:          active task CRUD and bulk clears
- approval:       submit / decline / approve state machine
- players:        player stats, ranks, rewards, push endpoints
- notifications:  durable notification log and outbound push
- shared:         exceptions, formulas, base service/repository, stores
"""
