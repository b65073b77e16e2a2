"""
API 層

- bets：註冊、下注、獎金池、本局下注列表
- rounds：回合狀態
"""
