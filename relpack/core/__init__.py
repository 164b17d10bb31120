"""核心模块: 包清单、来源追溯、发布流程"""
