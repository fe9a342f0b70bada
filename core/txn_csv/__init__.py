"""
Transaction CSV backup core package.

- models.py  : Pydantic モデル定義（TransactionRecord / API リクエスト・レスポンス）
- codec.py   : 取引レコード <-> バックアップ CSV の変換（encode / decode）
- backup.py  : 取引ストアとのバックアップ入出力
- service.py : API 向け処理（Base64 + response_level による間引き）
- settings.py: 環境変数からの設定読み込み
"""
