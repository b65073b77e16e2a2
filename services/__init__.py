"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- WinnerService：加權抽獎
- WagerService：下注金額驗證
"""
