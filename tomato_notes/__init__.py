"""
Tomato Notes - ポモドーロタイマー + タスクノート
"""
