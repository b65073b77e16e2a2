"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- Ledger：玩家餘額與本局下注的一致性包裝
- RoundManager：開獎與換局
- RoundScheduler：固定週期的背景開獎任務
- Locks：並發控制工具
"""
