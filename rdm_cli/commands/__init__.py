"""コマンドモジュール"""
